"""watoto setup script"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from read_version import read_version
from setuptools import find_packages, setup

with open("README.md", "r") as fh:
    LONG_DESC = fh.read()
    setup(
        name="watoto",
        version=read_version("watoto", "__init__.py"),
        author="Kofiya Technologies",
        author_email="info@kofiyatech.com",
        description="Survival analysis of under-five child mortality from DHS surveys",
        long_description=LONG_DESC,
        long_description_content_type="text/markdown",
        url="https://kofiyatech.com/",
        zip_safe=False,
        packages=find_packages(include=["watoto", "watoto.*"]),
        classifiers=[
            "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
            "Programming Language :: Python :: 3.9",
            "Programming Language :: Python :: 3.10",
            "Programming Language :: Python :: 3.11",
            "Operating System :: OS Independent",
        ],
        install_requires=[
            "hydra-core",
            "omegaconf",
            "read_version",
            "pandas",
            "numpy",
            "lifelines",
            "logdecorator",
            "hydra-colorlog",
        ],
        extras_require={
            "test": [
                "pytest",
                "hypothesis",
            ],
        },
        entry_points={
            "console_scripts": [
                "watoto-prepare=watoto.prepare_cohort:prepare_cohort",
                "watoto-analyze=watoto.analyze:analyze",
                "watoto-pipeline=watoto.pipeline:pipeline",
            ],
        },
        include_package_data=True,
    )

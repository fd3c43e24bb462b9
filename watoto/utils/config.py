"""Configuration Utilities
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from omegaconf import OmegaConf

from watoto.utils import logging

logger = logging.get_default_logger("watoto.utils.config")


class Config(object):
    """Configure the omega configuration environment."""

    _instance = None

    def __new__(cls):
        """Singleton pattern for the configuration class."""
        if cls._instance is None:
            logger.debug("Create new Config object")
            cls._instance = super(Config, cls).__new__(cls)

        return cls._instance

    def __init__(self):
        """Add new resolvers to OmegaConf."""
        logger.debug("Initialize Config object")
        OmegaConf.register_new_resolver(
            "range", lambda x, y: list(range(x, y)), replace=True
        )

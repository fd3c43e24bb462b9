"""Test the logging utilities."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import json

import numpy as np

from watoto.utils import logging


def test_default_logger():
    assert logging.get_default_logger().name == "watoto"


def test_set_verbosity():
    logging.set_verbosity(logging.DEBUG)
    assert logging.get_default_logger().level == logging.DEBUG
    logging.set_verbosity(logging.INFO)
    assert logging.get_default_logger().level == logging.INFO


def test_np_encoder():
    payload = {
        "n": np.int64(3),
        "p": np.float64(0.25),
        "died": np.bool_(True),
        "ages": np.array([1, 2]),
    }
    decoded = json.loads(json.dumps(payload, cls=logging.NpEncoder))

    assert decoded == {"n": 3, "p": 0.25, "died": True, "ages": [1, 2]}

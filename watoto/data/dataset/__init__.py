"""Dataset module."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from watoto.data.dataset.parse_dhs import dhs

__all__ = [
    "dhs",
]

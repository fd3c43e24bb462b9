"""Utilities."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

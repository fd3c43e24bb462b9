"""Survival analysis of under-five child mortality from DHS surveys."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"
__version__ = "0.1.0"

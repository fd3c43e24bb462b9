"""Data loading and cohort construction."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

"""Analysis module for the DHS child mortality cohort.

This module provides descriptive summaries of the data preparation and the
Kaplan-Meier and Cox proportional-hazards analyses of the cohort.
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

"""Descriptive summaries of the survey extract and the cohort.

These summaries are for human review of the data preparation, e.g. how many
records carry each age-at-death flag or how the age is distributed among
children who died. They never feed back into the cohort.
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from typing import Dict, Sequence

import pandas as pd

from watoto.data.cohort import ENDPOINTS, TIME_COL, VITAL_STATUS_COL, Endpoint
from watoto.utils import logging

logger = logging.get_default_logger()


def value_counts(frame: pd.DataFrame, column: str) -> pd.DataFrame:
    """Count records per value of a column, missing values included."""
    counts = (
        frame[column]
        .value_counts(dropna=False)
        .rename_axis(column)
        .reset_index(name="n")
        .sort_values(column, na_position="last")
        .reset_index(drop=True)
    )
    return counts


def age_summary(frame: pd.DataFrame, columns: Sequence[str]) -> pd.DataFrame:
    """Five-number summary, mean and missing count of numeric columns."""
    rows = {}
    for col in columns:
        values = pd.to_numeric(frame[col], errors="coerce")
        rows[col] = {
            "min": values.min(),
            "q1": values.quantile(0.25),
            "median": values.median(),
            "mean": values.mean(),
            "q3": values.quantile(0.75),
            "max": values.max(),
            "n_missing": int(values.isna().sum()),
        }
    return pd.DataFrame.from_dict(rows, orient="index")


def age_by_group(
    frame: pd.DataFrame, group_col: str = VITAL_STATUS_COL, age_col: str = TIME_COL
) -> pd.DataFrame:
    summaries = {
        group: age_summary(part, [age_col]).iloc[0]
        for group, part in frame.groupby(group_col, sort=True)
    }
    summary = pd.DataFrame.from_dict(summaries, orient="index")
    summary.index.name = group_col
    return summary


def describe_cohort(
    cohort: pd.DataFrame, endpoints: Sequence[Endpoint] = ENDPOINTS
) -> Dict:
    """Summarise vital status, censoring and age of a built cohort."""
    results = {
        "n_total": len(cohort),
        "vital_status": {
            str(k): int(v)
            for k, v in cohort[VITAL_STATUS_COL].value_counts().sort_index().items()
        },
        "censoring": {},
        "age": age_summary(cohort, [TIME_COL]).iloc[0].to_dict(),
        "age_by_vital_status": {
            str(k): v for k, v in age_by_group(cohort).to_dict(orient="index").items()
        },
    }

    for endpoint in endpoints:
        n_events = int(cohort[endpoint.event_col].sum())
        results["censoring"][endpoint.name] = {
            "n_events": n_events,
            "n_censored": len(cohort) - n_events,
        }
        logger.info(
            f"{endpoint.name}: {n_events} events, {len(cohort) - n_events} censored"
        )

    return results

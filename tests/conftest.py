"""Shared fixtures."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import numpy as np
import pandas as pd
import pytest

from watoto.data.cohort import derive_censoring


def synthetic_cohort(n=400, seed=0):
    """Cohort where rural children die more often than urban ones."""
    rng = np.random.default_rng(seed)
    residence = np.where(rng.random(n) < 0.5, "Urban", "Rural")
    water = np.where(rng.random(n) < 0.3, "Piped", "Other")
    mother_age = rng.integers(15, 49, n)
    died = rng.random(n) < np.where(residence == "Rural", 0.4, 0.05)
    age = np.where(died, rng.integers(0, 24, n), rng.integers(0, 60, n))
    frame = pd.DataFrame(
        {
            "V025_recoded": residence,
            "V113_recoded": water,
            "V012": mother_age,
            "age_child_month": age.astype("int64"),
            "is_died": died,
        }
    )
    return derive_censoring(frame)


@pytest.fixture
def cohort():
    return synthetic_cohort()


@pytest.fixture
def survey_files(tmp_path):
    """Raw DHS-style extract and schema whose cohort is ``synthetic_cohort()``."""
    cohort = synthetic_cohort()
    died = cohort["is_died"]
    records = pd.DataFrame(
        {
            "V025_recoded": cohort["V025_recoded"],
            "V113_recoded": cohort["V113_recoded"],
            "V012": cohort["V012"],
            "B6": np.nan,
            "B7": cohort["age_child_month"].where(died),
            "B13": np.where(died, 0.0, np.nan),
            "HW1": cohort["age_child_month"].where(~died),
        }
    )
    source = tmp_path / "records.csv"
    records.to_csv(source, index=False)

    schema = tmp_path / "schema.csv"
    schema.write_text(
        "Name,Type,Recoded\n"
        "V025,feature_categorical,TRUE\n"
        "V113,feature_categorical,TRUE\n"
        "V012,feature_numeric,FALSE\n"
        "B6,response,FALSE\n"
        "B7,response,FALSE\n"
        "B13,response,FALSE\n"
        "HW1,response,FALSE\n"
    )
    return {"source": str(source), "schema": str(schema), "cohort": cohort}

"""Process a DHS child (KR) survival extract.

1. Read the survey table and the variable schema
2. Build the survival cohort
3. Save the cohort and the data preparation diagnostics
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import json
from dataclasses import dataclass, field
from logging import DEBUG, ERROR
from pathlib import Path
from typing import Optional

import pandas as pd
from logdecorator import log_on_end, log_on_error, log_on_start

from watoto.analysis import diagnostics
from watoto.data import load
from watoto.data.cohort import CohortReport, SourceColumns, build_cohort
from watoto.utils import logging

logger = logging.get_default_logger()


def _to_json(df: pd.DataFrame, orient: str):
    # missing values become null, JSON has no NaN
    return df.astype(object).where(df.notna(), None).to_dict(orient=orient)


@dataclass
class dhs:
    source: str
    schema: str
    processed_dir: str
    name: str
    columns: dict = field(default_factory=dict)
    sep: str = ","
    write_diagnostics: bool = True

    @property
    def out_dir(self) -> Path:
        return Path(f"{self.processed_dir}/{self.name}")

    @property
    def cohort_path(self) -> Path:
        return Path(f"{self.out_dir}/{self.name}.csv")

    @log_on_start(DEBUG, "Create DHS survival cohort...")
    @log_on_error(
        ERROR,
        "Error creating DHS survival cohort: {e!r}",
        on_exceptions=Exception,
        reraise=True,
    )
    @log_on_end(DEBUG, "done!")
    def __call__(self) -> pd.DataFrame:
        # 1. read the inputs
        records = load.read_table(self.source, sep=self.sep)
        schema = load.read_schema(self.schema, sep=self.sep)
        source_columns = SourceColumns(**dict(self.columns))

        raw_summary: Optional[dict] = None
        if self.write_diagnostics:
            raw_summary = self._raw_diagnostics(records, source_columns)

        # 2. build the cohort
        report = CohortReport()
        cohort = build_cohort(records, schema, columns=source_columns, report=report)

        # 3. save to file
        self.out_dir.mkdir(parents=True, exist_ok=True)
        cohort.to_csv(self.cohort_path, index=False)
        logger.info(f"Saved cohort of {len(cohort)} children to {self.cohort_path}")

        if self.write_diagnostics:
            summary = {
                "raw": raw_summary,
                "report": report.to_dict(),
                "cohort": diagnostics.describe_cohort(cohort),
            }
            with Path(f"{self.out_dir}/{self.name}-diagnostics.json").open("w") as f:
                json.dump(summary, f, indent=2, cls=logging.NpEncoder)

        return cohort

    def _raw_diagnostics(self, records: pd.DataFrame, columns: SourceColumns) -> dict:
        results = {"n_records": len(records)}

        flag = columns.death_flag
        if flag in records.columns:
            counts = diagnostics.value_counts(records, flag)
            logging.log_frame(logger, f"Age-at-death flag ({flag}) counts", counts)
            results["death_flag_counts"] = _to_json(counts, "records")

        status = columns.vital_status
        if status is not None and status in records.columns:
            counts = diagnostics.value_counts(records, status)
            logging.log_frame(logger, f"Vital status ({status}) counts", counts)
            results["vital_status_counts"] = _to_json(counts, "records")

        ages = [col for col in columns.age_sources if col in records.columns]
        if ages:
            summary = diagnostics.age_summary(records, ages)
            logging.log_frame(logger, "Age sources", summary)
            results["age_sources"] = _to_json(summary, "index")

        return results

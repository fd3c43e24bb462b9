"""Build the survival cohort from a DHS child (KR) extract.

The cohort is derived by a forward sequence of table transformations. Each
step takes a frame and returns a new one, so the steps can be run and tested
in isolation:

1. keep the schema's analysis variables
2. drop records whose age-at-death flag (B13) reports a data-quality caveat
3. drop the encoded age at death (B6), superseded by its imputed months (B7)
4. drop records whose age is unknown
5. derive the vital status, from an explicit status column or the flag (B13)
6. derive the age in months from a ready-made age, the current age (HW1) or
   the age at death (B7)
7. drop the source columns of the age and the vital status
8. derive the right-censoring indicators of the study endpoints
9. keep the covariates and the outcome columns
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from dataclasses import asdict, dataclass, field
from logging import DEBUG, ERROR
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from logdecorator import log_on_end, log_on_error, log_on_start

from watoto.data import schema as schema_
from watoto.data.schema import SchemaEntry
from watoto.exceptions import (
    IncompleteRecordError,
    MalformedInputError,
    SchemaMismatchError,
)
from watoto.utils import logging

logger = logging.get_default_logger()

TIME_COL = "age_child_month"
VITAL_STATUS_COL = "is_died"
MAX_AGE_MONTHS = 59


@dataclass(frozen=True)
class SourceColumns:
    """DHS variables the age and the vital status are derived from.

    Pre-processed extracts may already carry a vital status column
    (``vital_status``, where ``died_value`` marks a death) and an age in
    months (``age_months``). Both take precedence over the DHS variables,
    which then only fill the records the explicit columns leave empty.
    """

    age_at_death_raw: str = "B6"
    age_at_death_months_imputed: str = "B7"
    death_flag: str = "B13"
    current_age_months: str = "HW1"
    vital_status: Optional[str] = None
    died_value: Any = "no"
    age_months: Optional[str] = None

    @property
    def required(self) -> Tuple[str, ...]:
        status = (self.death_flag,) if self.vital_status is None else (self.vital_status,)
        if self.age_months is None:
            return status + (self.age_at_death_months_imputed, self.current_age_months)
        return status + (self.age_months,)

    @property
    def numeric(self) -> Tuple[str, ...]:
        numeric = (
            self.age_at_death_raw,
            self.death_flag,
            self.age_at_death_months_imputed,
            self.current_age_months,
        )
        return numeric if self.age_months is None else numeric + (self.age_months,)

    @property
    def age_sources(self) -> Tuple[str, ...]:
        # alive children carry their current age, deceased ones their age at death
        sources = (self.current_age_months, self.age_at_death_months_imputed)
        return sources if self.age_months is None else (self.age_months,) + sources

    @property
    def sources(self) -> Tuple[str, ...]:
        if self.vital_status is None:
            return self.numeric
        return self.numeric + (self.vital_status,)


@dataclass(frozen=True)
class Endpoint:
    """A study endpoint: deaths before the horizon count as events."""

    name: str
    horizon_months: int

    @property
    def event_col(self) -> str:
        return f"censored_{self.name}"


U5 = Endpoint("u5", 60)
U1 = Endpoint("u1", 12)
ENDPOINTS = (U5, U1)


@dataclass
class CohortReport:
    """Record counts collected while the cohort is built."""

    n_input: int = 0
    death_flag_counts: Dict[str, int] = field(default_factory=dict)
    n_flagged: int = 0
    n_unknown_age: int = 0
    n_both_ages: int = 0
    n_died: int = 0
    n_output: int = 0
    censoring_counts: Dict[str, Dict[int, int]] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


class FallbackChain:
    """Resolve one value per record from an ordered list of nullable columns.

    The first source holding a value for a record wins; sources later in the
    chain only fill the records the earlier ones left empty.
    """

    def __init__(self, sources: Sequence[str]):
        self.sources = list(sources)

    def __call__(self, frame: pd.DataFrame) -> pd.Series:
        resolved = pd.Series(np.nan, index=frame.index, dtype="float64")
        for source in self.sources:
            if source not in frame.columns:
                raise SchemaMismatchError(
                    f"Fallback source {source} is not in the data", column=source
                )
            resolved = resolved.where(resolved.notna(), frame[source])
        return resolved


def _first(mask: pd.Series):
    return mask.index[mask.to_numpy()][0]


def _present(frame: pd.DataFrame, columns: Sequence[str]) -> List[str]:
    return [col for col in columns if col in frame.columns]


def coerce_numeric(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    """Convert the source columns to numbers, rejecting non-numeric values."""
    frame = frame.copy()
    for col in columns.numeric:
        if col not in frame.columns:
            continue
        values = pd.to_numeric(frame[col], errors="coerce")
        invalid = values.isna() & frame[col].notna()
        if invalid.any():
            index = _first(invalid)
            raise MalformedInputError(
                f"Column {col} holds non-numeric value {frame.at[index, col]!r} "
                f"in record {index}",
                column=col,
                index=index,
            )
        frame[col] = values.astype("float64")
    return frame


def select_columns(
    records: pd.DataFrame, schema: Sequence[SchemaEntry]
) -> pd.DataFrame:
    """Keep the feature and response variables of the schema found in the data."""
    for entry in schema_.select(schema, (schema_.RESPONSE,)):
        if schema_.resolve(entry, records.columns) is None:
            raise SchemaMismatchError(
                f"Response variable {entry.name} resolves to column {entry.column}, "
                "which is not in the data",
                column=entry.column,
            )

    columns = schema_.resolve_columns(schema, records.columns)
    logger.debug(f"Keep {len(columns)} of {len(records.columns)} columns")
    return records.loc[:, columns].copy()


def require_source_columns(frame: pd.DataFrame, columns: SourceColumns) -> None:
    for col in columns.required:
        if col not in frame.columns:
            raise SchemaMismatchError(
                f"Column {col} is required to derive the age and vital status "
                "but is not among the selected variables",
                column=col,
            )


def filter_quality_flags(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    """Drop records whose age-at-death flag is set to anything but 'no flag'."""
    if columns.death_flag not in frame.columns:
        return frame.copy()
    flag = frame[columns.death_flag]
    keep = flag.isna() | (flag == 0)
    logger.debug(f"Drop {int((~keep).sum())} records with an age-at-death flag")
    return frame.loc[keep].copy()


def drop_raw_age_at_death(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    return frame.drop(columns=[columns.age_at_death_raw], errors="ignore")


def filter_unknown_age(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    """Drop records with neither an age at death nor a current age."""
    unknown = frame[_present(frame, columns.age_sources)].isna().all(axis=1)
    logger.debug(f"Drop {int(unknown.sum())} records of unknown age")
    return frame.loc[~unknown].copy()


def derive_vital_status(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    """Derive whether the child died.

    An explicit vital status wins where it is recorded. Otherwise a child
    counts as died when the age-at-death flag was recorded at all.
    """
    frame = frame.copy()
    if columns.death_flag in frame.columns:
        flagged = frame[columns.death_flag].notna()
    else:
        flagged = pd.Series(False, index=frame.index)

    if columns.vital_status is None:
        frame[VITAL_STATUS_COL] = flagged
        return frame

    status = frame[columns.vital_status]
    died = (status == columns.died_value).where(status.notna(), flagged)
    frame[VITAL_STATUS_COL] = died.astype(bool)
    return frame


def derive_age(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    """Derive the age in whole months, from the current age or the age at death."""
    sources = _present(frame, columns.age_sources)
    age = FallbackChain(sources)(frame)

    missing = age.isna()
    if missing.any():
        index = _first(missing)
        raise IncompleteRecordError(
            f"Record {index} has none of the age columns {sources}",
            index=index,
        )

    invalid = (age < 0) | (age > MAX_AGE_MONTHS) | (age != np.floor(age))
    if invalid.any():
        index = _first(invalid)
        raise MalformedInputError(
            f"Record {index} has age {age[index]} which is not a whole number "
            f"of months in [0, {MAX_AGE_MONTHS}]",
            column=TIME_COL,
            index=index,
        )

    frame = frame.copy()
    frame[TIME_COL] = age.astype("int64")
    return frame


def drop_source_columns(frame: pd.DataFrame, columns: SourceColumns) -> pd.DataFrame:
    derived = {TIME_COL, VITAL_STATUS_COL}
    drop = [col for col in columns.sources if col not in derived]
    return frame.drop(columns=drop, errors="ignore")


def derive_censoring(
    frame: pd.DataFrame, endpoints: Sequence[Endpoint] = ENDPOINTS
) -> pd.DataFrame:
    """Flag deaths before each endpoint's horizon as events (1), others as censored (0)."""
    frame = frame.copy()
    for endpoint in endpoints:
        frame[endpoint.event_col] = (
            frame[VITAL_STATUS_COL] & (frame[TIME_COL] < endpoint.horizon_months)
        ).astype("int64")
    return frame


def outcome_columns(endpoints: Sequence[Endpoint] = ENDPOINTS):
    return [TIME_COL, VITAL_STATUS_COL] + [e.event_col for e in endpoints]


def project_cohort(
    frame: pd.DataFrame,
    schema: Sequence[SchemaEntry],
    endpoints: Sequence[Endpoint] = ENDPOINTS,
) -> pd.DataFrame:
    """Keep the schema's covariates followed by the outcome columns."""
    outcome = outcome_columns(endpoints)
    covariates = [
        col
        for col in schema_.resolve_columns(
            schema, frame.columns, schema_.FEATURE_TYPES
        )
        if col not in outcome
    ]
    return frame.loc[:, covariates + outcome].reset_index(drop=True)


@log_on_start(DEBUG, "Build the survival cohort...", logger=logger)
@log_on_error(
    ERROR,
    "Error building the survival cohort: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
def build_cohort(
    records: pd.DataFrame,
    schema: Sequence[SchemaEntry],
    columns: SourceColumns = SourceColumns(),
    endpoints: Sequence[Endpoint] = ENDPOINTS,
    report: Optional[CohortReport] = None,
) -> pd.DataFrame:
    """Turn raw survey records into an analysis-ready survival cohort.

    Args:
        records: Raw survey table, one row per child
        schema: Variable schema deciding the analysis variables
        columns: Names of the DHS source variables
        endpoints: Study endpoints to derive censoring indicators for
        report: Optional report filled with record counts along the way

    Returns:
        pd.DataFrame: Covariates, age_child_month, is_died and one
        censoring indicator per endpoint

    Raises:
        SchemaMismatchError: A response variable or a source column is missing
        MalformedInputError: A source column is not numeric or an age is out of range
        IncompleteRecordError: A record has no resolvable age
    """
    report = report if report is not None else CohortReport()
    report.n_input = len(records)

    frame = select_columns(records, schema)
    require_source_columns(frame, columns)
    frame = coerce_numeric(frame, columns)

    if columns.death_flag in frame.columns:
        counts = frame[columns.death_flag].value_counts(dropna=False).sort_index()
        report.death_flag_counts = {
            ("NA" if pd.isna(value) else str(int(value))): int(n)
            for value, n in counts.items()
        }
    n_before = len(frame)
    frame = filter_quality_flags(frame, columns)
    report.n_flagged = n_before - len(frame)

    frame = drop_raw_age_at_death(frame, columns)

    n_before = len(frame)
    frame = filter_unknown_age(frame, columns)
    report.n_unknown_age = n_before - len(frame)

    ages = [columns.current_age_months, columns.age_at_death_months_imputed]
    if len(_present(frame, ages)) == 2:
        both = frame[ages].notna().all(axis=1)
        report.n_both_ages = int(both.sum())
    if report.n_both_ages:
        logger.warning(
            f"{report.n_both_ages} records carry both a current age and an age "
            f"at death; using {columns.current_age_months}"
        )

    frame = derive_vital_status(frame, columns)
    report.n_died = int(frame[VITAL_STATUS_COL].sum())

    frame = derive_age(frame, columns)
    frame = drop_source_columns(frame, columns)
    frame = derive_censoring(frame, endpoints)
    cohort = project_cohort(frame, schema, endpoints)

    report.n_output = len(cohort)
    report.censoring_counts = {
        endpoint.name: {
            int(k): int(v)
            for k, v in cohort[endpoint.event_col].value_counts().sort_index().items()
        }
        for endpoint in endpoints
    }
    logger.info(
        f"Cohort of {report.n_output} children ({report.n_died} died) from "
        f"{report.n_input} records; dropped {report.n_flagged} flagged and "
        f"{report.n_unknown_age} of unknown age"
    )
    return cohort

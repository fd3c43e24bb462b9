"""Variable schema for the DHS survival extract.

The schema table lists one survey variable per row with the columns
``Name``, ``Type`` and ``Recoded``. Variables flagged as recoded are read
from the ``<Name>_recoded`` column produced by the recoding step of the
extract instead of the raw DHS column.
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from watoto.exceptions import MalformedInputError
from watoto.utils import logging

logger = logging.get_default_logger()

FEATURE_NUMERIC = "feature_numeric"
FEATURE_CATEGORICAL = "feature_categorical"
RESPONSE = "response"

FEATURE_TYPES = (FEATURE_NUMERIC, FEATURE_CATEGORICAL)
ANALYSIS_TYPES = FEATURE_TYPES + (RESPONSE,)

SCHEMA_COLUMNS = ("Name", "Type", "Recoded")
RECODED_SUFFIX = "_recoded"

_TRUE = {"true", "t", "yes", "y", "1"}
_FALSE = {"false", "f", "no", "n", "0", ""}


@dataclass(frozen=True)
class SchemaEntry:
    name: str
    type: str
    recoded: bool = False

    @property
    def column(self) -> str:
        """Column holding the variable for the analysis."""
        return f"{self.name}{RECODED_SUFFIX}" if self.recoded else self.name

    @property
    def is_feature(self) -> bool:
        return self.type in FEATURE_TYPES

    @property
    def is_response(self) -> bool:
        return self.type == RESPONSE


def parse_recoded(value) -> bool:
    """Interpret the ``Recoded`` cell; blanks count as not recoded."""
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return False
    if isinstance(value, (int, float, np.number)) and value in (0, 1):
        return bool(value)
    token = str(value).strip().lower()
    if token in _TRUE:
        return True
    if token in _FALSE:
        return False
    raise MalformedInputError(
        f"Cannot interpret Recoded value {value!r} as a boolean", column="Recoded"
    )


def from_frame(df: pd.DataFrame) -> List[SchemaEntry]:
    """Convert a schema table into schema entries, preserving row order."""
    missing = [col for col in SCHEMA_COLUMNS if col not in df.columns]
    if missing:
        raise MalformedInputError(
            f"Schema table lacks required columns {missing}; found {list(df.columns)}"
        )

    entries = []
    for index, row in df.iterrows():
        if pd.isna(row["Name"]) or pd.isna(row["Type"]):
            raise MalformedInputError(
                f"Schema row {index} has no Name or Type", index=index
            )
        try:
            recoded = parse_recoded(row["Recoded"])
        except MalformedInputError as e:
            e.index = index
            raise
        entries.append(
            SchemaEntry(
                name=str(row["Name"]).strip(),
                type=str(row["Type"]).strip(),
                recoded=recoded,
            )
        )

    logger.debug(f"Parsed {len(entries)} schema entries")
    return entries


def select(
    schema: Iterable[SchemaEntry], types: Sequence[str] = ANALYSIS_TYPES
) -> List[SchemaEntry]:
    return [entry for entry in schema if entry.type in types]


def resolve(entry: SchemaEntry, available: Iterable[str]) -> Optional[str]:
    """Map an entry to its effective column, or None if the data lacks it."""
    column = entry.column
    return column if column in set(available) else None


def resolve_columns(
    schema: Iterable[SchemaEntry],
    available: Iterable[str],
    types: Sequence[str] = ANALYSIS_TYPES,
) -> List[str]:
    """Resolve the entries of the given types against the available columns.

    Unknown names are skipped. The result keeps schema order and holds each
    column once.
    """
    available = list(available)
    columns = []
    for entry in select(schema, types):
        column = resolve(entry, available)
        if column is None:
            logger.debug(f"Schema variable {entry.name} ({entry.column}) not in data")
        elif column not in columns:
            columns.append(column)
    return columns

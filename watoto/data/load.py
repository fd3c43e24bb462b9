"""Read the survey extract and its variable schema"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from logging import DEBUG, ERROR
from typing import List

import pandas as pd
from logdecorator import log_on_end, log_on_error, log_on_start

from watoto.data import schema as schema_
from watoto.exceptions import MalformedInputError
from watoto.utils import logging

logger = logging.get_default_logger()


@log_on_start(DEBUG, "Read survey table {path}...", logger=logger)
@log_on_error(
    ERROR,
    "Error reading survey table: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
def read_table(path: str, sep: str = ",") -> pd.DataFrame:
    """Read a delimited survey table, one row per child."""
    try:
        df = pd.read_csv(path, sep=sep, low_memory=False)
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError(f"Survey table {path} is empty") from e

    logger.debug(f"Read {len(df)} records with {len(df.columns)} columns")
    return df


@log_on_start(DEBUG, "Read variable schema {path}...", logger=logger)
@log_on_error(
    ERROR,
    "Error reading variable schema: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
def read_schema(path: str, sep: str = ",") -> List[schema_.SchemaEntry]:
    try:
        df = pd.read_csv(path, sep=sep)
    except pd.errors.EmptyDataError as e:
        raise MalformedInputError(f"Schema table {path} is empty") from e

    return schema_.from_frame(df)

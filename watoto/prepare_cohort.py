"""Prepare the survival cohort from a DHS extract."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from logging import DEBUG, ERROR

import hydra
import pandas as pd
from logdecorator import log_on_end, log_on_error, log_on_start
from omegaconf import DictConfig

from watoto.utils import config, logging

logger = logging.get_default_logger()


def _prepare_cohort(cfg: DictConfig) -> pd.DataFrame:
    dataModule = hydra.utils.instantiate(cfg.data.parse)
    return dataModule()


@log_on_start(DEBUG, "Start preparing the cohort...", logger=logger)
@log_on_error(
    ERROR,
    "Error during cohort preparation: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
@hydra.main(version_base=None, config_path="../conf", config_name="prepare_cohort.yaml")
def prepare_cohort(cfg: DictConfig) -> None:
    config.Config()
    logging.set_verbosity(cfg.get("verbosity", logging.INFO))
    _prepare_cohort(cfg)


if __name__ == "__main__":
    prepare_cohort()

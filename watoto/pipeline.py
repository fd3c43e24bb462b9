"""Run the pipeline for the survival analysis."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

from logging import DEBUG, ERROR
from typing import Dict

import hydra
from logdecorator import log_on_end, log_on_error, log_on_start
from omegaconf import DictConfig

from watoto.analyze import run_analysis
from watoto.prepare_cohort import _prepare_cohort
from watoto.utils import config, logging

logger = logging.get_default_logger()


def _pipeline(cfg: DictConfig) -> Dict:
    logger.info("Run cohort preparation")
    cohort = _prepare_cohort(cfg)
    logger.info("Run survival analysis")
    return run_analysis(cohort, cfg.analysis, cfg.outputs.dir)


@log_on_start(DEBUG, "Start the pipeline...", logger=logger)
@log_on_error(
    ERROR,
    "Error during the pipeline: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
@hydra.main(version_base=None, config_path="../conf", config_name="pipeline.yaml")
def pipeline(cfg: DictConfig) -> None:
    """Run the cohort preparation and the survival analysis steps."""
    config.Config()
    logging.set_verbosity(cfg.get("verbosity", logging.INFO))
    _pipeline(cfg)


if __name__ == "__main__":
    pipeline()

"""Kaplan-Meier and Cox regression analysis of under-five and under-one mortality."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import json
from logging import DEBUG, ERROR
from pathlib import Path
from typing import Dict, Optional

import hydra
import numpy as np
import pandas as pd
from logdecorator import log_on_end, log_on_error, log_on_start
from omegaconf import DictConfig

from watoto.analysis import survival
from watoto.utils import config, logging

logger = logging.get_default_logger()

ENDPOINTS = {endpoint.name: endpoint for endpoint in survival.ENDPOINTS}


def _finite_or_none(value) -> Optional[float]:
    # the median survival is infinite while survival stays above one half
    value = float(value)
    return value if np.isfinite(value) else None


def _cox_results(cph) -> Dict:
    return {
        "stats": survival.cox_model_stats(cph),
        "coefficients": survival.cox_summary(cph).to_dict(orient="index"),
    }


def analyze_endpoint(
    cohort: pd.DataFrame,
    endpoint: survival.Endpoint,
    params: DictConfig,
    output_dir: Path,
    alpha: float = 0.05,
    penalizer: float = 0.0,
) -> Dict:
    """Run the life tables, stratified curves and Cox models of one endpoint.

    Args:
        cohort: Survival cohort
        endpoint: Study endpoint
        params: Endpoint parameters: strata, cox_covariates, cox_full_model,
            cox_exclude, life_table_times, life_table_extend
        output_dir: Directory to save the tables in
        alpha: Significance level of confidence intervals and tests
        penalizer: Penalizer of the Cox models

    Returns:
        Dict: Analysis results
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    results = {"baseline": {}, "strata": {}, "cox": {}}

    # Kaplan-Meier life table
    formula = survival.SurvivalFormula.for_endpoint(endpoint, ())
    kmf = survival.fit_kaplan_meier(cohort, formula, alpha=alpha)
    survival.life_table(kmf).to_csv(output_dir / "km_baseline.csv", index=False)
    results["baseline"] = {
        "n": len(cohort),
        "n_events": int(cohort[endpoint.event_col].sum()),
        "median_survival": _finite_or_none(kmf.median_survival_time_),
    }
    for label, times in params.get("life_table_times", {}).items():
        table = survival.life_table(
            kmf, list(times), extend=params.get("life_table_extend", False)
        )
        table.to_csv(output_dir / f"km_baseline_{label}.csv", index=False)
        logging.log_frame(logger, f"{endpoint.name} life table ({label})", table)

    # Kaplan-Meier curves per stratum with log-rank test
    for strata in params.get("strata", []):
        formula = survival.SurvivalFormula.for_endpoint(endpoint, [strata])
        skm = survival.fit_stratified_kaplan_meier(cohort, formula, alpha=alpha)
        skm.life_tables().to_csv(output_dir / f"km_{strata}.csv", index=False)
        results["strata"][strata] = skm.logrank_summary()

    # Cox regression, one covariate at a time
    for covariate in params.get("cox_covariates", []):
        formula = survival.SurvivalFormula.for_endpoint(endpoint, [covariate])
        cph = survival.fit_cox(cohort, formula, penalizer=penalizer, alpha=alpha)
        survival.cox_summary(cph).to_csv(output_dir / f"cox_{covariate}.csv")
        results["cox"][covariate] = _cox_results(cph)

    # Cox regression on all covariates
    if params.get("cox_full_model", False):
        formula = survival.SurvivalFormula.for_endpoint(
            endpoint, exclude=list(params.get("cox_exclude", []))
        )
        cph = survival.fit_cox(cohort, formula, penalizer=penalizer, alpha=alpha)
        summary = survival.cox_summary(cph)
        summary.to_csv(output_dir / "cox_all.csv")
        logging.log_frame(logger, f"{endpoint.name} Cox model on all covariates", summary)
        results["cox"]["all"] = _cox_results(cph)

    return results


def run_analysis(cohort: pd.DataFrame, analysis: DictConfig, output_dir: str) -> Dict:
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    results = {}
    for name, params in analysis.endpoints.items():
        if name not in ENDPOINTS:
            raise ValueError(f"Unknown endpoint {name}; choose from {list(ENDPOINTS)}")
        logger.info(f"Analyse endpoint {name}")
        results[name] = analyze_endpoint(
            cohort,
            ENDPOINTS[name],
            params,
            Path(output_dir) / name,
            alpha=analysis.get("alpha", 0.05),
            penalizer=analysis.get("penalizer", 0.0),
        )

    with Path(f"{output_dir}/analysis_summary.json").open("w") as f:
        json.dump(results, f, indent=2, cls=logging.NpEncoder)

    logger.info(f"Analysis completed. Results saved to {output_dir}")
    return results


def _analyze(cfg: DictConfig) -> Dict:
    cohort_path = Path(
        f"{cfg.data.parse.processed_dir}/{cfg.data.parse.name}/{cfg.data.parse.name}.csv"
    )
    logger.info(f"Load cohort from {cohort_path}")
    cohort = pd.read_csv(cohort_path)
    return run_analysis(cohort, cfg.analysis, cfg.outputs.dir)


@log_on_start(DEBUG, "Start the survival analysis...", logger=logger)
@log_on_error(
    ERROR,
    "Error during the survival analysis: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
@hydra.main(version_base=None, config_path="../conf", config_name="analyze.yaml")
def analyze(cfg: DictConfig) -> None:
    config.Config()
    logging.set_verbosity(cfg.get("verbosity", logging.INFO))
    _analyze(cfg)


if __name__ == "__main__":
    analyze()

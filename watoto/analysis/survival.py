"""Kaplan-Meier and Cox proportional-hazards analysis of the cohort.

Estimation is done by lifelines; this module shapes the cohort into the
inputs lifelines expects and the fitted models into life tables and
coefficient tables.
"""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import re
from dataclasses import dataclass
from logging import DEBUG, ERROR
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from lifelines import CoxPHFitter, KaplanMeierFitter
from lifelines.statistics import StatisticalResult, multivariate_logrank_test
from logdecorator import log_on_end, log_on_error, log_on_start
from pandas.api.types import is_bool_dtype, is_numeric_dtype

from watoto.data.cohort import ENDPOINTS, TIME_COL, U1, U5, Endpoint, outcome_columns
from watoto.exceptions import SchemaMismatchError
from watoto.utils import logging

logger = logging.get_default_logger()

__all__ = [
    "ENDPOINTS",
    "U1",
    "U5",
    "Endpoint",
    "SurvivalFormula",
    "StratifiedKaplanMeier",
    "fit_kaplan_meier",
    "life_table",
    "fit_stratified_kaplan_meier",
    "fit_cox",
    "cox_summary",
    "cox_model_stats",
]

_SURV = re.compile(r"^\s*Surv\((?P<inner>.*)\)\s*$")


@dataclass(frozen=True)
class SurvivalFormula:
    """Time column, event column and covariates of a survival model.

    ``covariates=None`` stands for every remaining covariate of the cohort
    except those in ``exclude``, an empty tuple for none at all.
    """

    time: str = TIME_COL
    event: str = U5.event_col
    covariates: Optional[Tuple[str, ...]] = None
    exclude: Tuple[str, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "SurvivalFormula":
        """Parse ``"time, event ~ a + b"``; ``~ .`` means all covariates, ``~ 1`` none.

        The outcome may also be written as ``Surv(time, event)``, and columns
        can be left out of ``~ .`` as in ``~ . - cluster_number - survey_year``.
        """
        lhs, sep, rhs = text.partition("~")
        if not sep:
            raise ValueError(f"Formula {text!r} has no '~'")

        match = _SURV.match(lhs)
        outcome = [t.strip() for t in (match.group("inner") if match else lhs).split(",")]
        if len(outcome) != 2 or not all(outcome):
            raise ValueError(f"Formula {text!r} must name a time and an event column")

        rhs = rhs.strip()
        exclude: Tuple[str, ...] = ()
        if rhs.startswith("."):
            covariates = None
            rest = rhs[1:].strip()
            if rest:
                terms = [t.strip() for t in rest.split("-")]
                if terms[0] or not all(terms[1:]):
                    raise ValueError(f"Formula {text!r} can only subtract columns from '.'")
                exclude = tuple(terms[1:])
        elif rhs in ("", "1"):
            covariates = ()
        else:
            covariates = tuple(t.strip() for t in rhs.split("+"))
            if not all(covariates):
                raise ValueError(f"Formula {text!r} has an empty covariate")

        return cls(
            time=outcome[0], event=outcome[1], covariates=covariates, exclude=exclude
        )

    @classmethod
    def for_endpoint(
        cls,
        endpoint: Endpoint,
        covariates: Optional[Sequence[str]] = None,
        exclude: Sequence[str] = (),
    ) -> "SurvivalFormula":
        return cls(
            time=TIME_COL,
            event=endpoint.event_col,
            covariates=None if covariates is None else tuple(covariates),
            exclude=tuple(exclude),
        )

    def resolve(self, frame: pd.DataFrame) -> List[str]:
        """Return the covariate columns of the model, checking they exist.

        Excluded columns absent from the frame are ignored.
        """
        _require(frame, [self.time, self.event])
        if self.covariates is None:
            excluded = set(outcome_columns()) | {self.time, self.event} | set(self.exclude)
            return [
                col
                for col in frame.columns
                if col not in excluded and not col.startswith("censored_")
            ]
        _require(frame, self.covariates)
        return list(self.covariates)

    def __str__(self):
        if self.covariates is None:
            rhs = " - ".join((".",) + self.exclude)
        else:
            rhs = " + ".join(self.covariates) or "1"
        return f"{self.time}, {self.event} ~ {rhs}"


def _require(frame: pd.DataFrame, columns: Sequence[str]) -> None:
    for col in columns:
        if col not in frame.columns:
            raise SchemaMismatchError(f"Column {col} is not in the cohort", column=col)


@log_on_start(DEBUG, "Fit Kaplan-Meier estimator for {formula!s}...", logger=logger)
@log_on_error(
    ERROR,
    "Error fitting the Kaplan-Meier estimator: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
def fit_kaplan_meier(
    cohort: pd.DataFrame,
    formula: SurvivalFormula,
    label: Optional[str] = None,
    alpha: float = 0.05,
) -> KaplanMeierFitter:
    _require(cohort, [formula.time, formula.event])
    kmf = KaplanMeierFitter(alpha=alpha)
    kmf.fit(
        cohort[formula.time],
        event_observed=cohort[formula.event],
        label=label or formula.event,
    )
    return kmf


def life_table(
    kmf: KaplanMeierFitter,
    times: Optional[Sequence[float]] = None,
    extend: bool = False,
) -> pd.DataFrame:
    """Tabulate a fitted Kaplan-Meier estimator.

    Without ``times`` there is one row per distinct event time, with the
    number at risk, events and censorings at that time. With ``times`` there
    is one row per requested time, with the number at risk at that time and
    the events and censorings since the previous requested time.

    Args:
        kmf: Fitted Kaplan-Meier estimator
        times: Optional times to evaluate the survival function at
        extend: Keep requested times past the last observed duration

    Returns:
        pd.DataFrame: time, n_risk, n_event, n_censored, survival, ci_lower, ci_upper
    """
    if times is None:
        table = kmf.event_table
        table = table.loc[table["observed"] > 0]
        grid = table.index.to_numpy(dtype=float)
        counts = pd.DataFrame(
            {
                "n_risk": table["at_risk"].to_numpy(dtype=int),
                "n_event": table["observed"].to_numpy(dtype=int),
                "n_censored": table["censored"].to_numpy(dtype=int),
            }
        )
    else:
        grid = np.sort(np.asarray(times, dtype=float))
        durations = np.asarray(kmf.durations, dtype=float)
        if not extend and len(durations):
            # survival is unknown after the last observation
            grid = grid[grid <= durations.max()]
        observed = np.asarray(kmf.event_observed).astype(bool)
        rows = []
        previous = -np.inf
        for t in grid:
            window = (durations > previous) & (durations <= t)
            rows.append(
                {
                    "n_risk": int((durations >= t).sum()),
                    "n_event": int((window & observed).sum()),
                    "n_censored": int((window & ~observed).sum()),
                }
            )
            previous = t
        counts = pd.DataFrame(rows, columns=["n_risk", "n_event", "n_censored"])

    ci = kmf.confidence_interval_survival_function_.reindex(grid, method="ffill")
    result = pd.DataFrame({"time": grid})
    result = pd.concat([result, counts], axis=1)
    result["survival"] = kmf.survival_function_at_times(grid).to_numpy()
    result["ci_lower"] = ci.iloc[:, 0].to_numpy()
    result["ci_upper"] = ci.iloc[:, 1].to_numpy()
    return result


@dataclass
class StratifiedKaplanMeier:
    """One Kaplan-Meier estimator per stratum and their log-rank comparison."""

    strata: str
    fitters: Dict[str, KaplanMeierFitter]
    logrank: Optional[StatisticalResult]

    def life_tables(
        self, times: Optional[Sequence[float]] = None, extend: bool = False
    ) -> pd.DataFrame:
        tables = []
        for stratum, kmf in self.fitters.items():
            table = life_table(kmf, times, extend=extend)
            table.insert(0, self.strata, stratum)
            tables.append(table)
        return pd.concat(tables, ignore_index=True)

    def logrank_summary(self) -> Dict:
        n = {stratum: len(kmf.durations) for stratum, kmf in self.fitters.items()}
        if self.logrank is None:
            return {"strata": self.strata, "n": n}
        return {
            "strata": self.strata,
            "n": n,
            "test_statistic": float(self.logrank.test_statistic),
            "p_value": float(self.logrank.p_value),
            "degrees_of_freedom": len(self.fitters) - 1,
        }


@log_on_start(DEBUG, "Fit stratified Kaplan-Meier estimators for {formula!s}...", logger=logger)
@log_on_error(
    ERROR,
    "Error fitting stratified Kaplan-Meier estimators: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
def fit_stratified_kaplan_meier(
    cohort: pd.DataFrame, formula: SurvivalFormula, alpha: float = 0.05
) -> StratifiedKaplanMeier:
    """Fit one curve per value of the formula's single covariate.

    Records with a missing stratum are left out. The log-rank test is only
    run when there are at least two strata.
    """
    covariates = formula.resolve(cohort)
    if len(covariates) != 1:
        raise ValueError(
            f"Stratified Kaplan-Meier needs exactly one covariate, got {covariates}"
        )
    strata = covariates[0]

    data = cohort.loc[cohort[strata].notna()]
    dropped = len(cohort) - len(data)
    if dropped:
        logger.info(f"Leave out {dropped} records with missing {strata}")

    fitters = {}
    for stratum, part in data.groupby(strata, sort=True):
        fitters[str(stratum)] = fit_kaplan_meier(
            part, formula, label=f"{strata}={stratum}", alpha=alpha
        )

    logrank = None
    if len(fitters) > 1:
        logrank = multivariate_logrank_test(
            data[formula.time], data[strata], data[formula.event]
        )
        logger.info(
            f"Log-rank test over {strata}: chi2={logrank.test_statistic:.3f}, "
            f"p={logrank.p_value:.4g}"
        )
    else:
        logger.warning(f"Only {len(fitters)} stratum of {strata}; no log-rank test")

    return StratifiedKaplanMeier(strata=strata, fitters=fitters, logrank=logrank)


def _design_matrix(cohort: pd.DataFrame, formula: SurvivalFormula) -> pd.DataFrame:
    covariates = formula.resolve(cohort)
    if not covariates:
        raise ValueError(f"Cox model {formula} has no covariates")

    data = cohort.loc[:, covariates + [formula.time, formula.event]]
    n_before = len(data)
    data = data.dropna()
    if len(data) < n_before:
        logger.info(
            f"Leave out {n_before - len(data)} records with missing covariates"
        )

    categorical = [
        col
        for col in covariates
        if is_bool_dtype(data[col]) or not is_numeric_dtype(data[col])
    ]
    if categorical:
        logger.debug(f"Dummy-encode categorical covariates {categorical}")
        data = pd.get_dummies(data, columns=categorical, drop_first=True, dtype=float)

    return data


@log_on_start(DEBUG, "Fit Cox proportional-hazards model {formula!s}...", logger=logger)
@log_on_error(
    ERROR,
    "Error fitting the Cox proportional-hazards model: {e!r}",
    logger=logger,
    on_exceptions=Exception,
    reraise=True,
)
@log_on_end(DEBUG, "done!", logger=logger)
def fit_cox(
    cohort: pd.DataFrame,
    formula: SurvivalFormula,
    penalizer: float = 0.0,
    alpha: float = 0.05,
) -> CoxPHFitter:
    """Fit a Cox proportional-hazards model.

    Categorical covariates are dummy-encoded against their first level and
    records with missing covariates are left out.
    """
    data = _design_matrix(cohort, formula)
    cph = CoxPHFitter(penalizer=penalizer, alpha=alpha)
    cph.fit(data, duration_col=formula.time, event_col=formula.event)
    return cph


def cox_summary(cph: CoxPHFitter) -> pd.DataFrame:
    """Coefficients, hazard ratios and their significance, one row per covariate."""
    summary = cph.summary
    hr_ci = np.exp(cph.confidence_intervals_)
    result = pd.DataFrame(
        {
            "coef": summary["coef"],
            "hazard_ratio": summary["exp(coef)"],
            "se": summary["se(coef)"],
            "z": summary["z"],
            "p": summary["p"],
            "hr_lower": hr_ci.iloc[:, 0],
            "hr_upper": hr_ci.iloc[:, 1],
        }
    )
    result["significant"] = result["p"] < cph.alpha
    result.index.name = "covariate"
    return result


def cox_model_stats(cph: CoxPHFitter) -> Dict:
    lrt = cph.log_likelihood_ratio_test()
    return {
        "n": len(cph.durations),
        "n_events": int(np.asarray(cph.event_observed).sum()),
        "concordance": float(cph.concordance_index_),
        "log_likelihood": float(cph.log_likelihood_),
        "likelihood_ratio_test": float(lrt.test_statistic),
        "likelihood_ratio_p": float(lrt.p_value),
    }

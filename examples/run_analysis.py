"""
Example script showing how to use the cohort builder and the survival analysis
without the hydra entry points.

Usage:
    python examples/run_analysis.py <survey_csv> <schema_csv>
"""

import sys

from watoto.analysis import diagnostics, survival
from watoto.data import load
from watoto.data.cohort import CohortReport, build_cohort
from watoto.utils import logging


def main(source: str, schema_path: str) -> None:
    logging.set_verbosity(logging.INFO)

    records = load.read_table(source)
    schema = load.read_schema(schema_path)
    report = CohortReport()
    cohort = build_cohort(records, schema, report=report)

    print("\n=== Cohort ===")
    print(report.to_dict())
    print(diagnostics.describe_cohort(cohort)["censoring"])

    print("\n=== U5 life table ===")
    kmf = survival.fit_kaplan_meier(
        cohort, survival.SurvivalFormula.for_endpoint(survival.U5, ())
    )
    print(survival.life_table(kmf).to_string(index=False))

    print("\n=== U1 survival over the first year ===")
    kmf = survival.fit_kaplan_meier(
        cohort, survival.SurvivalFormula.for_endpoint(survival.U1, ())
    )
    print(survival.life_table(kmf, times=range(1, 13)).to_string(index=False))

    print("\n=== U5 Cox model on all covariates ===")
    cph = survival.fit_cox(cohort, survival.SurvivalFormula.parse("age_child_month, censored_u5 ~ ."))
    print(survival.cox_summary(cph).to_string())


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print(__doc__)
        sys.exit(1)
    main(sys.argv[1], sys.argv[2])

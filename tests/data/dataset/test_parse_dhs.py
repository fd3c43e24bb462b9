"""Test the DHS survival cohort parser."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import json

import hydra
import pandas as pd
import pytest
from omegaconf import OmegaConf

from watoto.data.dataset import dhs
from watoto.exceptions import SchemaMismatchError
from watoto.prepare_cohort import _prepare_cohort

RECORDS = (
    "HHID,V025,V025_recoded,V012,B6,B7,B13,HW1\n"
    "1,1,Urban,25,,,,43\n"
    "2,2,Rural,31,100,0,0,\n"
    "3,2,Rural,19,,,,4\n"
    "4,1,Urban,22,207,7,0,\n"
    "5,2,Rural,35,,,,\n"
    "6,2,Rural,28,302,24,6,\n"
    "7,1,Urban,40,,,,57\n"
)

SCHEMA = (
    "Name,Type,Recoded\n"
    "HHID,id,FALSE\n"
    "V025,feature_categorical,TRUE\n"
    "V012,feature_numeric,FALSE\n"
    "B6,response,FALSE\n"
    "B7,response,FALSE\n"
    "B13,response,FALSE\n"
    "HW1,response,FALSE\n"
)


@pytest.fixture
def inputs(tmp_path):
    source = tmp_path / "records.csv"
    source.write_text(RECORDS)
    schema = tmp_path / "schema.csv"
    schema.write_text(SCHEMA)
    return {
        "source": str(source),
        "schema": str(schema),
        "processed_dir": str(tmp_path / "processed"),
        "name": "dhs_test",
    }


def test_parse(inputs, tmp_path):
    parser = dhs(**inputs)
    cohort = parser()

    assert list(cohort["age_child_month"]) == [43, 0, 4, 7, 57]
    assert list(cohort["censored_u5"]) == [0, 1, 0, 1, 0]
    assert list(cohort["censored_u1"]) == [0, 1, 0, 1, 0]

    saved = pd.read_csv(parser.cohort_path)
    assert list(saved.columns) == list(cohort.columns)
    assert len(saved) == 5

    diagnostics_path = tmp_path / "processed" / "dhs_test" / "dhs_test-diagnostics.json"
    with diagnostics_path.open() as f:
        summary = json.load(f)
    assert summary["report"]["n_input"] == 7
    assert summary["report"]["n_flagged"] == 1
    assert summary["report"]["n_unknown_age"] == 1
    assert summary["report"]["n_died"] == 2
    assert summary["raw"]["n_records"] == 7
    assert summary["cohort"]["censoring"]["u5"] == {"n_events": 2, "n_censored": 3}


def test_parse_without_diagnostics(inputs, tmp_path):
    dhs(write_diagnostics=False, **inputs)()

    out_dir = tmp_path / "processed" / "dhs_test"
    assert (out_dir / "dhs_test.csv").exists()
    assert not (out_dir / "dhs_test-diagnostics.json").exists()


def test_parse_with_renamed_columns(inputs, tmp_path):
    source = tmp_path / "renamed.csv"
    source.write_text(RECORDS.replace("HW1", "age_months"))
    schema = tmp_path / "renamed-schema.csv"
    schema.write_text(SCHEMA.replace("HW1", "age_months"))
    inputs.update(source=str(source), schema=str(schema))

    cohort = dhs(columns={"current_age_months": "age_months"}, **inputs)()
    assert len(cohort) == 5


def test_parse_missing_response(inputs, tmp_path):
    schema = tmp_path / "schema-extra.csv"
    schema.write_text(SCHEMA + "B5,response,FALSE\n")
    inputs.update(schema=str(schema))

    with pytest.raises(SchemaMismatchError):
        dhs(**inputs)()


def test_instantiate(inputs):
    cfg = OmegaConf.create({"_target_": "watoto.data.dataset.dhs", **inputs})
    parser = hydra.utils.instantiate(cfg)

    assert isinstance(parser, dhs)
    assert len(parser()) == 5


def test_prepare_cohort(inputs):
    cfg = OmegaConf.create(
        {
            "data": {
                "parse": {
                    "_target_": "watoto.data.dataset.dhs",
                    "columns": {"death_flag": "B13"},
                    **inputs,
                }
            }
        }
    )
    cohort = _prepare_cohort(cfg)

    assert cohort["is_died"].sum() == 2


def reject_constant(token):
    raise ValueError(f"{token} is not valid JSON")


COMMUNITY_RECORDS = (
    "survey_country,cluster_number,place_of_residence,is_child_alive,age_child_months\n"
    "ET,1,urban,yes,30\n"
    "ET,1,rural,no,5\n"
    "ET,2,rural,no,40\n"
    "ET,2,urban,,\n"
)

COMMUNITY_SCHEMA = (
    "Name,Type,Recoded\n"
    "survey_country,feature_categorical,FALSE\n"
    "cluster_number,feature_numeric,FALSE\n"
    "place_of_residence,feature_categorical,FALSE\n"
    "is_child_alive,response,FALSE\n"
    "age_child_months,response,FALSE\n"
)


def test_parse_preprocessed_extract(inputs, tmp_path):
    source = tmp_path / "community.csv"
    source.write_text(COMMUNITY_RECORDS)
    schema = tmp_path / "community-schema.csv"
    schema.write_text(COMMUNITY_SCHEMA)
    inputs.update(source=str(source), schema=str(schema))

    columns = {"vital_status": "is_child_alive", "age_months": "age_child_months"}
    cohort = dhs(columns=columns, **inputs)()

    assert "is_child_alive" not in cohort.columns
    assert "age_child_months" not in cohort.columns
    assert list(cohort["age_child_month"]) == [30, 5, 40]
    assert list(cohort["is_died"]) == [False, True, True]
    assert list(cohort["censored_u1"]) == [0, 1, 0]

    diagnostics_path = tmp_path / "processed" / "dhs_test" / "dhs_test-diagnostics.json"
    with diagnostics_path.open() as f:
        summary = json.load(f, parse_constant=reject_constant)
    assert summary["report"]["n_unknown_age"] == 1
    assert "vital_status_counts" in summary["raw"]
    assert "age_child_months" in summary["raw"]["age_sources"]

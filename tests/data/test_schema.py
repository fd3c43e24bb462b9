"""Test the variable schema."""

__authors__ = ["Kofiya Technologies"]
__status__ = "Development"

import numpy as np
import pandas as pd
import pytest

from watoto.data import load, schema
from watoto.data.schema import SchemaEntry
from watoto.exceptions import MalformedInputError


def test_column_of_recoded_entry():
    assert SchemaEntry("V025", "feature_categorical", recoded=True).column == "V025_recoded"
    assert SchemaEntry("V012", "feature_numeric").column == "V012"


def test_entry_kinds():
    assert SchemaEntry("V012", "feature_numeric").is_feature
    assert SchemaEntry("V025", "feature_categorical").is_feature
    assert SchemaEntry("B7", "response").is_response
    assert not SchemaEntry("HHID", "id").is_feature


@pytest.mark.parametrize(
    "value,expected",
    [
        (True, True),
        (np.bool_(False), False),
        ("TRUE", True),
        ("False", False),
        (" yes ", True),
        (1, True),
        (0.0, False),
        (np.nan, False),
        (None, False),
        ("", False),
    ],
)
def test_parse_recoded(value, expected):
    assert schema.parse_recoded(value) is expected


def test_parse_recoded_rejects_garbage():
    with pytest.raises(MalformedInputError):
        schema.parse_recoded("sometimes")


def test_from_frame():
    df = pd.DataFrame(
        {
            "Name": ["V025", "V012", "B7"],
            "Type": ["feature_categorical", "feature_numeric", "response"],
            "Recoded": [True, False, np.nan],
            "Description": ["residence", "age", "age at death"],
        }
    )
    entries = schema.from_frame(df)

    assert entries == [
        SchemaEntry("V025", "feature_categorical", True),
        SchemaEntry("V012", "feature_numeric", False),
        SchemaEntry("B7", "response", False),
    ]


def test_from_frame_missing_columns():
    with pytest.raises(MalformedInputError):
        schema.from_frame(pd.DataFrame({"Name": ["V025"], "Type": ["response"]}))


def test_from_frame_reports_row():
    df = pd.DataFrame(
        {
            "Name": ["V025", "V012"],
            "Type": ["feature_categorical", "feature_numeric"],
            "Recoded": ["TRUE", "perhaps"],
        }
    )
    with pytest.raises(MalformedInputError) as excinfo:
        schema.from_frame(df)
    assert excinfo.value.index == 1


def test_from_frame_without_name():
    df = pd.DataFrame({"Name": [np.nan], "Type": ["response"], "Recoded": [False]})

    with pytest.raises(MalformedInputError):
        schema.from_frame(df)


def test_resolve():
    entry = SchemaEntry("V025", "feature_categorical", recoded=True)

    assert schema.resolve(entry, ["V025", "V025_recoded"]) == "V025_recoded"
    assert schema.resolve(entry, ["V025"]) is None


def test_resolve_columns():
    entries = [
        SchemaEntry("HHID", "id"),
        SchemaEntry("V025", "feature_categorical", recoded=True),
        SchemaEntry("V106", "feature_categorical", recoded=True),
        SchemaEntry("V012", "feature_numeric"),
        SchemaEntry("V012", "feature_numeric"),
        SchemaEntry("B7", "response"),
    ]
    available = ["HHID", "B7", "V012", "V025", "V025_recoded"]

    assert schema.resolve_columns(entries, available) == ["V025_recoded", "V012", "B7"]
    assert schema.resolve_columns(entries, available, schema.FEATURE_TYPES) == [
        "V025_recoded",
        "V012",
    ]


def test_read_schema(tmp_path):
    path = tmp_path / "schema.csv"
    path.write_text(
        "Name,Type,Recoded\n"
        "V025,feature_categorical,TRUE\n"
        "V012,feature_numeric,FALSE\n"
        "B13,response,\n"
    )
    entries = load.read_schema(str(path))

    assert [entry.column for entry in entries] == ["V025_recoded", "V012", "B13"]


def test_read_empty_schema(tmp_path):
    path = tmp_path / "schema.csv"
    path.write_text("")

    with pytest.raises(MalformedInputError):
        load.read_schema(str(path))


def test_read_table(tmp_path):
    path = tmp_path / "records.csv"
    path.write_text("B7,B13,HW1\n,,30\n5,0,\n")
    df = load.read_table(str(path))

    assert list(df.columns) == ["B7", "B13", "HW1"]
    assert len(df) == 2
    assert pd.isna(df.loc[0, "B13"])


def test_read_table_with_separator(tmp_path):
    path = tmp_path / "records.tsv"
    path.write_text("B7\tHW1\n\t30\n")

    assert list(load.read_table(str(path), sep="\t").columns) == ["B7", "HW1"]

import pytest
from datetime import date, datetime, timezone

from loaders.predicates import (
    MATCH_ALL,
    FilterError,
    build_where,
    diameter_where,
    normalize_where,
    to_epoch_millis,
)


def test_missing_field_or_operator_matches_all():
    assert build_where("", ">=", 150) == MATCH_ALL
    assert build_where("nominaldiameter", None, 150) == MATCH_ALL


def test_numeric_field():
    assert build_where("nominaldiameter", ">=", "150", "esriFieldTypeInteger") == "nominaldiameter >= 150"
    assert build_where("length", "<", 12.5, "esriFieldTypeDouble") == "length < 12.5"


def test_string_field_is_quoted():
    assert build_where("suburb", "=", "Kent Town", "esriFieldTypeString") == "suburb = 'Kent Town'"
    assert build_where("suburb", "=", "O'Halloran Hill", "esriFieldTypeString") == "suburb = 'O''Halloran Hill'"


def test_like_wraps_wildcards():
    assert build_where("suburb", "like", "Kent", "esriFieldTypeString") == "suburb LIKE '%Kent%'"


def test_empty_value_compares_to_null():
    assert build_where("suburb", "=", "", "esriFieldTypeString") == "suburb = NULL"
    assert build_where("nominaldiameter", "!=", None) == "nominaldiameter != NULL"


def test_date_field_uses_epoch_millis():
    clause = build_where("installdate", ">=", "2020-01-01", "esriFieldTypeDate")
    assert clause == "installdate >= 1577836800000"


def test_unparseable_date_raises():
    with pytest.raises(FilterError):
        build_where("installdate", ">=", "01/02/2020", "esriFieldTypeDate")


def test_unknown_type_guesses_from_value():
    assert build_where("material", "=", "PVC") == "material = 'PVC'"
    assert build_where("pressure", ">", "40") == "pressure > 40"


def test_non_finite_numbers_rejected():
    with pytest.raises(FilterError):
        build_where("nominaldiameter", ">=", float("nan"), "esriFieldTypeInteger")
    with pytest.raises(FilterError):
        build_where("nominaldiameter", ">=", "inf")


def test_bad_operator_and_field_rejected():
    with pytest.raises(FilterError):
        build_where("nominaldiameter", "=>", 150)
    with pytest.raises(FilterError):
        build_where("nominaldiameter; DROP", ">=", 150)


def test_epoch_millis():
    assert to_epoch_millis(date(2020, 1, 1)) == 1577836800000
    assert to_epoch_millis(datetime(2020, 1, 1, tzinfo=timezone.utc)) == 1577836800000
    assert to_epoch_millis("2020-01-01T00:00:01Z") == 1577836801000


def test_diameter_where():
    assert diameter_where(150) == "nominaldiameter >= 150"
    assert diameter_where("0") == "nominaldiameter >= 0"
    for bad in (-1, "wide", float("nan"), None):
        with pytest.raises(FilterError):
            diameter_where(bad)


def test_normalize_where():
    assert normalize_where(None) == MATCH_ALL
    assert normalize_where("   ") == MATCH_ALL
    assert normalize_where(" a = 1 ") == "a = 1"

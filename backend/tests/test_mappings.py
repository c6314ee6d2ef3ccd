import pytest

from app.workflow.mappings import (
    apply_response_mappings,
    coerce_data_type,
    collect_response_mappings,
    parse_float,
    resolve_field_mapping,
)


def test_collect_prefers_mapping_list_then_legacy_pair():
    assert collect_response_mappings({"responseDataMappings": [{"responsePath": "a", "updatePath": "b"}]}) == [
        {"responsePath": "a", "updatePath": "b"}
    ]
    assert collect_response_mappings({"responseDataPath": "a", "updateJsonPath": "b"}) == [
        {"responsePath": "a", "updatePath": "b"}
    ]
    assert collect_response_mappings({"responsePath": "a", "updateJsonPath": "b"}, legacy_response_key="responsePath")
    assert collect_response_mappings({}) == []


def test_apply_writes_values_and_skips_bad_mappings():
    data = {"name": "scalar"}
    applied = apply_response_mappings(
        {"data": {"client": {"id": "C-1"}}},
        data,
        [
            {"responsePath": "data.client.id", "updatePath": "orders[0].consignee.clientId"},
            {"responsePath": "data.client.id", "updatePath": "name.first"},
            {"responsePath": "data.client.id"},
        ],
    )
    assert data["orders"][0]["consignee"]["clientId"] == "C-1"
    assert [a["updatePath"] for a in applied] == ["orders[0].consignee.clientId"]


def test_apply_writes_none_unless_skip_missing():
    data = {"status": "old"}
    apply_response_mappings({}, data, [{"responsePath": "nope", "updatePath": "status"}], skip_missing=True)
    assert data["status"] == "old"
    apply_response_mappings({}, data, [{"responsePath": "nope", "updatePath": "status"}])
    assert data["status"] is None


@pytest.mark.parametrize(
    "value, data_type, expected",
    [
        ("42abc", "integer", 42),
        ("abc", "integer", None),
        ("3.50", "number", 3.5),
        ("7", "number", 7),
        ("x", "number", None),
        ("TRUE", "boolean", True),
        ("yes", "boolean", False),
        (12, "string", "12"),
    ],
)
def test_coerce_data_type(value, data_type, expected):
    assert coerce_data_type(value, data_type) == expected


def test_parse_float():
    assert parse_float("12.5kg") == 12.5
    assert parse_float(None) is None
    assert parse_float(True) is None
    assert parse_float("n/a") is None


def test_resolve_field_mapping():
    data = {"vendor": {"id": "17"}}
    assert resolve_field_mapping({"type": "hardcoded", "value": "5", "dataType": "integer"}, data) == 5
    assert resolve_field_mapping({"type": "variable", "value": "V-{{vendor.id}}"}, data) == "V-17"
    assert resolve_field_mapping({"type": "variable", "value": "{{vendor.id}}", "dataType": "number"}, data) == 17
    assert resolve_field_mapping({"type": "other", "value": "x"}, data) is None

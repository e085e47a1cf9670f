import pytest

from datalens_bridge.errors import InvalidArgumentsError
from datalens_bridge.services.args_service import (
    TOOLS_BY_NAME,
    FieldSpec,
    ToolSpec,
    canonicalize,
    get_tool_spec,
    normalize_json_value,
)


def test_normalize_json_value_parses_documents():
    assert normalize_json_value('{"a": 1}', "payload") == {"a": 1}
    assert normalize_json_value("  [1, 2] ", "payload") == [1, 2]
    assert normalize_json_value({"a": 1}, "payload") == {"a": 1}


def test_normalize_json_value_keeps_plain_strings():
    assert normalize_json_value("plain text", "payload") == "plain text"
    assert normalize_json_value("42", "payload") == "42"


def test_normalize_json_value_rejects_broken_json():
    with pytest.raises(InvalidArgumentsError) as exc:
        normalize_json_value("{not json", "entry")
    assert "field `entry` must be valid JSON when passed as a string" in exc.value.message
    assert exc.value.data == {"field": "entry"}


def test_get_dataset_uses_snake_rev_id():
    spec = get_tool_spec("datalens_get_dataset")
    body = canonicalize(spec, {"datasetId": "ds1", "revId": "r1"})
    assert body == {"datasetId": "ds1", "rev_id": "r1"}


def test_get_dashboard_uses_camel_rev_id_and_permission_aliases():
    spec = get_tool_spec("datalens_get_dashboard")
    body = canonicalize(spec, {"dashboard_id": "d1", "rev_id": "r1", "includePermissionsInfo": True})
    assert body == {"dashboardId": "d1", "revId": "r1", "includePermissions": True}


def test_first_declared_name_wins_and_aliases_are_consumed():
    spec = get_tool_spec("datalens_get_dataset")
    body = canonicalize(spec, {"dataset_id": "canonical", "datasetId": "alias"})
    assert body == {"datasetId": "canonical"}


def test_create_dataset_snake_wire_keys():
    spec = get_tool_spec("datalens_create_dataset")
    body = canonicalize(
        spec,
        {"dataset": "{}", "name": "my-dataset", "workbookId": "wb-1", "dirPath": "/x"},
    )
    assert body == {"dataset": {}, "dir_path": "/x", "name": "my-dataset", "workbook_id": "wb-1"}


def test_defaults_apply_when_absent_or_null():
    assert canonicalize(get_tool_spec("datalens_list_directory"), {}) == {"path": "/"}
    assert canonicalize(get_tool_spec("datalens_list_directory"), None) == {"path": "/"}
    assert canonicalize(get_tool_spec("datalens_list_directory"), {"path": None}) == {"path": "/"}
    assert canonicalize(get_tool_spec("datalens_update_dataset"), {"dataset_id": "ds1"}) == {
        "datasetId": "ds1",
        "data": {},
    }


def test_defaults_are_fresh_objects():
    spec = get_tool_spec("datalens_validate_dataset")
    first = canonicalize(spec, {"dataset_id": "ds1"})
    first["data"]["mutated"] = True
    assert canonicalize(spec, {"dataset_id": "ds1"})["data"] == {}


def test_required_json_field_accepts_null():
    spec = get_tool_spec("datalens_update_connection")
    assert canonicalize(spec, {"connection_id": "c1", "data": None}) == {"connectionId": "c1", "data": None}


def test_missing_required_fields_are_listed():
    with pytest.raises(InvalidArgumentsError) as exc:
        canonicalize(get_tool_spec("datalens_create_dashboard"), {"mode": "save"})
    assert exc.value.data["missing"] == ["entry"]

    with pytest.raises(InvalidArgumentsError) as exc:
        canonicalize(get_tool_spec("datalens_get_dataset"), {"dataset_id": None})
    assert exc.value.data["missing"] == ["dataset_id"]


def test_wrong_kinds_are_rejected():
    spec = get_tool_spec("datalens_list_directory")
    with pytest.raises(InvalidArgumentsError, match="field `page` must be a number"):
        canonicalize(spec, {"page": "2"})
    with pytest.raises(InvalidArgumentsError, match="must be a number"):
        canonicalize(spec, {"page": True})
    with pytest.raises(InvalidArgumentsError, match="must be a bool"):
        canonicalize(spec, {"includePermissionsInfo": "yes"})


def test_non_object_arguments_are_rejected():
    with pytest.raises(InvalidArgumentsError, match="must be a JSON object"):
        canonicalize(get_tool_spec("datalens_get_entries"), ["ids"])


def test_extra_keys_pass_through_and_win():
    spec = ToolSpec(name="t", description="", method="m", fields=(FieldSpec(name="a", wire="A"),))
    assert canonicalize(spec, {"a": "typed", "A": "extra"}) == {"A": "extra"}

    body = canonicalize(get_tool_spec("datalens_list_directory"), {"pageSize": 5, "custom": {"x": 1}})
    assert body == {"path": "/", "pageSize": 5, "custom": {"x": 1}}


def test_tools_without_extra_bag_drop_unknown_keys():
    body = canonicalize(get_tool_spec("datalens_rpc"), {"method": "getWorkbook", "stray": 1})
    assert body == {"method": "getWorkbook", "payload": {}}


def test_input_schema_lists_aliases_and_alternatives():
    schema = TOOLS_BY_NAME["datalens_get_dashboard"].input_schema()
    assert schema["type"] == "object"
    assert schema["additionalProperties"] is True
    assert "includePermissionsInfo" in schema["properties"]
    assert schema["properties"]["rev_id"]["type"] == ["string", "null"]
    assert {"anyOf": [{"required": ["dashboard_id"]}, {"required": ["dashboardId"]}]} in schema["allOf"]
    assert "required" not in schema


def test_input_schema_for_generic_tool():
    schema = TOOLS_BY_NAME["datalens_rpc"].input_schema()
    assert schema["required"] == ["method"]
    assert schema["additionalProperties"] is False
    assert schema["properties"]["payload"]["default"] == {}


def test_unknown_tool():
    with pytest.raises(InvalidArgumentsError, match="Unknown tool: nope"):
        get_tool_spec("nope")

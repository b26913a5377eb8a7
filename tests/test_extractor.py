"""Tests for lua_lint_mcp.sources.extractor and the signature records."""

import json
import textwrap
from datetime import UTC, datetime

import pytest

from lua_lint_mcp.sources.extractor import (
    extract,
    extract_annotated,
    extract_catalog,
    extract_hybrid,
    extract_plain,
    parse_parameters,
)
from lua_lint_mcp.sources.models import (
    UNKNOWN,
    CacheEntry,
    FunctionDoc,
    KnownType,
    ParameterDoc,
    ReturnDoc,
    SourceKind,
    parse_type,
)


def lua(source: str) -> str:
    return textwrap.dedent(source).lstrip("\n")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class TestTypeRef:
    def test_known(self):
        assert parse_type("string") == KnownType("string")

    def test_unknown_variants(self):
        assert parse_type(None) is UNKNOWN
        assert parse_type("") is UNKNOWN
        assert parse_type("any") is UNKNOWN

    def test_unknown_serialises_as_any(self):
        assert ParameterDoc(name="x").to_dict()["type"] == "any"


class TestRecords:
    def test_function_doc_round_trip(self):
        doc = FunctionDoc(
            name="lib.notify",
            source="ox_lib",
            description="Show a notification",
            parameters=[
                ParameterDoc(name="data", type=KnownType("table"), description="options"),
                ParameterDoc(name="duration", optional=True),
            ],
            returns=[ReturnDoc(type="boolean", description="shown")],
            examples=["lib.notify({ title = 'Hi' })"],
        )
        assert FunctionDoc.from_dict(json.loads(json.dumps(doc.to_dict()))) == doc

    def test_cache_entry_shape(self):
        entry = CacheEntry(
            source_name="ox_lib",
            functions={},
            last_update=datetime(2024, 5, 1, tzinfo=UTC),
            etag='"abc"',
        )
        data = entry.to_dict()
        assert set(data) == {"functions", "lastUpdate", "source", "etag"}
        restored = CacheEntry.from_dict("ox_lib", data)
        assert restored.etag == '"abc"'
        assert restored.last_modified is None
        assert restored.last_update == entry.last_update

    def test_source_kind_legacy_names(self):
        assert SourceKind.parse("lua_types") is SourceKind.ANNOTATED
        assert SourceKind.parse("natives") is SourceKind.CATALOG
        assert SourceKind.parse("hybrid") is SourceKind.HYBRID

    def test_source_kind_unknown(self):
        with pytest.raises(ValueError):
            SourceKind.parse("yaml")


# ---------------------------------------------------------------------------
# Annotated definitions
# ---------------------------------------------------------------------------


ANNOTATED = lua(
    """
    ---Show a notification to the player
    ---@param data table Notification options
    ---@param duration? number Milliseconds on screen
    ---@return boolean shown Whether it was displayed
    function lib.notify(data, duration?)
    end

    ---Get a callback result
    ---@example
    ---local v = lib.callback.await('name')
    ---@return any
    lib.callback.await = function(name, delay)
    end

    local function helper(a)
    end

    ---Orphaned comment
    local unrelated = 1
    function lib.undocumented()
    end
    """
)


class TestAnnotated:
    def test_documented_function(self):
        functions = extract_annotated(ANNOTATED, "ox_lib")
        doc = functions["lib.notify"]
        assert doc.source == "ox_lib"
        assert doc.description == "Show a notification to the player"
        assert [p.name for p in doc.parameters] == ["data", "duration"]
        assert doc.parameters[0].type == KnownType("table")
        assert doc.parameters[0].description == "Notification options"
        assert doc.parameters[1].optional is True
        assert doc.returns == [
            ReturnDoc(type="boolean", description="shown Whether it was displayed")
        ]

    def test_examples_separated_from_description(self):
        doc = extract_annotated(ANNOTATED, "ox_lib")["lib.callback.await"]
        assert doc.examples == ["local v = lib.callback.await('name')"]
        assert doc.description == "Get a callback result"
        assert doc.returns[0].type == "any"

    def test_undocumented_declarations(self):
        functions = extract_annotated(ANNOTATED, "ox_lib")
        assert functions["helper"].description == "Function from ox_lib"
        assert [p.name for p in functions["helper"].parameters] == ["a"]

    def test_code_line_detaches_comment(self):
        doc = extract_annotated(ANNOTATED, "ox_lib")["lib.undocumented"]
        assert doc.description == "Function from ox_lib"

    def test_blank_line_keeps_comment(self):
        content = lua(
            """
            ---Kept across a blank line

            function Foo()
            end
            """
        )
        assert extract_annotated(content, "s")["Foo"].description == (
            "Kept across a blank line"
        )

    def test_union_type(self):
        content = lua(
            """
            ---@param id string|nil The id
            function Get(id)
            end
            """
        )
        param = extract_annotated(content, "s")["Get"].parameters[0]
        assert param.type == KnownType("string|nil")
        assert param.description == "The id"

    def test_missing_description_default(self):
        content = "---@param x number\nfunction Foo(x)\nend\n"
        assert extract_annotated(content, "s")["Foo"].description == (
            "No description available"
        )

    def test_exports_assignment_keeps_prefix(self):
        """The generic assignment shape matches first, so the name keeps exports."""
        content = "---Exported\nexports.GetJob = function(src)\nend\n"
        functions = extract_annotated(content, "s")
        assert list(functions) == ["exports.GetJob"]
        assert functions["exports.GetJob"].description == "Exported"

    def test_lib_shape(self):
        content = "lib.points.new = function(data)\nend\n"
        functions = extract_annotated(content, "s")
        assert list(functions) == ["lib.points.new"]


class TestParameters:
    def test_empty(self):
        assert parse_parameters("   ", []) == []

    def test_unannotated_params_unknown(self):
        params = parse_parameters("a, b?", [])
        assert params[0].type is UNKNOWN
        assert params[1].optional is True
        assert params[1].name == "b"

    def test_annotation_for_other_name_ignored(self):
        params = parse_parameters("a", ["@param zzz string"])
        assert params[0].type is UNKNOWN


# ---------------------------------------------------------------------------
# Plain / hybrid
# ---------------------------------------------------------------------------


class TestPlain:
    def test_whole_content_scan(self):
        content = lua(
            """
            function Alpha(a, b) end
            local function beta() end
            Gamma = function(x) end
            exports('Delta', function(y) end)
            exports.Epsilon = function() end
            """
        )
        functions = extract_plain(content, "res")
        assert {"Alpha", "beta", "Gamma", "Delta", "Epsilon"} <= set(functions)
        assert functions["Alpha"].description == "Function from res"
        assert [p.name for p in functions["Alpha"].parameters] == ["a", "b"]

    def test_upgrades_to_hybrid_with_annotations(self):
        content = lua(
            """
            ---Documented export
            ---@param id number
            exports('GetThing', function(id)
            end)
            """
        )
        doc = extract_plain(content, "res")["GetThing"]
        assert doc.description == "Documented export"
        assert doc.parameters[0].type == KnownType("number")

    def test_hybrid_recognises_exports_call(self):
        functions = extract_hybrid("exports('Open', function(menu)\nend)\n", "res")
        assert list(functions) == ["Open"]


# ---------------------------------------------------------------------------
# JSON natives catalog
# ---------------------------------------------------------------------------


class TestCatalog:
    def test_native_entry(self):
        content = json.dumps(
            {
                "GET_ENTITY_COORDS": {
                    "name": "GetEntityCoords",
                    "description": "Gets coordinates",
                    "side": "client",
                    "parameters": [
                        {"name": "entity", "type": "Entity"},
                        {"name": "alive", "type": "BOOL", "optional": True},
                    ],
                    "returns": {"type": "vector3"},
                    "examples": ["GetEntityCoords(PlayerPedId())"],
                }
            }
        )
        doc = extract_catalog(content, "natives")["GET_ENTITY_COORDS"]
        assert doc.name == "GetEntityCoords"
        assert doc.description == "Gets coordinates (Side: client)"
        assert doc.parameters[1].optional is True
        assert doc.returns[0].type == "vector3"
        assert doc.examples == ["GetEntityCoords(PlayerPedId())"]

    def test_defaults(self):
        doc = extract_catalog(json.dumps({"WAIT": {}}), "natives")["WAIT"]
        assert doc.name == "WAIT"
        assert doc.description == "Native function from natives"
        assert doc.returns == []

    def test_return_type_defaults_to_void(self):
        content = json.dumps({"X": {"returns": [{"description": "nothing"}]}})
        assert extract_catalog(content, "n")["X"].returns[0].type == "void"

    def test_invalid_json_yields_empty(self):
        assert extract_catalog("{not json", "natives") == {}

    def test_non_object_root_yields_empty(self):
        assert extract_catalog("[1, 2]", "natives") == {}

    def test_bad_entries_skipped(self):
        content = json.dumps({"GOOD": {"name": "Good"}, "BAD": "oops"})
        assert list(extract_catalog(content, "natives")) == ["GOOD"]


class TestDispatch:
    def test_kind_string(self):
        functions = extract("function Foo() end", "s", "plain-functions")
        assert "Foo" in functions

    def test_legacy_kind_string(self):
        assert extract("{}", "s", "natives") == {}

    def test_malformed_input_never_raises(self):
        for kind in SourceKind:
            assert isinstance(extract("\x00{[(--", "s", kind), dict)

"""Tests for the tool catalog."""

from __future__ import annotations

from social_mcp.tools.catalog import (
    TOOL_SPECS,
    ToolName,
    list_tools,
    parse_tool_name,
    tool_definitions,
)


class TestCatalog:
    def test_every_tool_has_a_spec(self):
        assert set(TOOL_SPECS) == set(ToolName)

    def test_names_are_prefixed(self):
        assert all(tool.name.startswith("social_") for tool in list_tools())

    def test_identity_tools_accept_profile_id(self):
        schema = TOOL_SPECS[ToolName.GET_MATCHES].input_schema()
        assert "profile_id" in schema["properties"]

    def test_register_does_not_take_profile_id(self):
        schema = TOOL_SPECS[ToolName.REGISTER].input_schema()
        assert "profile_id" not in schema["properties"]
        assert schema["required"] == ["display_name"]

    def test_set_intent_category_enum(self):
        category = TOOL_SPECS[ToolName.SET_INTENT].input_schema()["properties"]["category"]
        assert "friendship" in category["enum"]
        assert "romance" in category["enum"]

    def test_wire_definitions_use_camel_case(self):
        definition = next(d for d in tool_definitions() if d["name"] == "social_respond_match")
        assert definition["inputSchema"]["required"] == ["match_id", "action"]

    def test_parse_tool_name(self):
        assert parse_tool_name("social_whoami") == ToolName.WHOAMI
        assert parse_tool_name("social_nope") is None
        assert parse_tool_name(None) is None

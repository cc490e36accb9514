from __future__ import annotations

import pytest

from mcp_host.catalog import Tool, ToolSchema, flatten, split_tool_name, to_provider_schema


MCP_TOOLS = [
    {
        "name": "list_dir",
        "description": "List a directory",
        "inputSchema": {
            "type": "object",
            "properties": {"path": {"type": "string"}},
            "required": ["path"],
        },
    },
    {"name": "pwd", "description": "Current directory"},
]


def test_flatten_namespaces_names_and_copies_schema():
    tools = flatten("fs", MCP_TOOLS)

    assert [t.name for t in tools] == ["fs__list_dir", "fs__pwd"]
    list_dir = tools[0]
    assert list_dir.description == "List a directory"
    assert list_dir.input_schema.type == "object"
    assert list_dir.input_schema.properties == {"path": {"type": "string"}}
    assert list_dir.input_schema.required == frozenset({"path"})
    assert tools[1].input_schema == ToolSchema()


def test_flatten_of_empty_list_is_empty():
    assert flatten("fs", []) == []


def test_catalog_names_split_back_to_server_and_tool():
    for server in ("fs", "sqlite", "my-server"):
        for tool in flatten(server, MCP_TOOLS):
            assert split_tool_name(tool.name) == (server, tool.name[len(server) + 2:])

    assert split_tool_name(flatten("db", [{"name": "query"}])[0].name) == ("db", "query")


def test_split_rejects_names_without_exactly_two_parts():
    assert split_tool_name("nounderscore") is None
    assert split_tool_name("a__b__c") is None
    assert split_tool_name("__tool") is None
    assert split_tool_name("server__") is None


def test_single_underscores_are_not_separators():
    assert split_tool_name("my_server__read_file") == ("my_server", "read_file")


def test_provider_schema_is_a_function_tool():
    tool = Tool(
        name="fs__list_dir",
        description="List a directory",
        input_schema=ToolSchema(properties={"path": {"type": "string"}}, required=frozenset({"path"})),
    )
    schema = to_provider_schema(tool)

    assert schema["type"] == "function"
    assert schema["function"]["name"] == "fs__list_dir"
    assert schema["function"]["parameters"] == {
        "type": "object",
        "properties": {"path": {"type": "string"}},
        "required": ["path"],
    }


@pytest.mark.parametrize("entry", [{"description": "nameless"}, "list_dir", {"name": None}])
def test_flatten_rejects_malformed_entries(entry):
    with pytest.raises(ValueError, match="malformed tool entry from fs"):
        flatten("fs", [entry])

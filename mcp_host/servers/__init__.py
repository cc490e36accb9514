"""Reference MCP tool servers."""

"""MCP tool groups."""

"""Stdio MCP proxy for the Social MCP gateway."""

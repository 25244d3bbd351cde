"""MCP transport."""

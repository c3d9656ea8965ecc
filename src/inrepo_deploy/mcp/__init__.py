"""MCP server exposing the deploy engine over stdio."""

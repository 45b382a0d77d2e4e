"""MCP stdio server exposing the live sync service."""

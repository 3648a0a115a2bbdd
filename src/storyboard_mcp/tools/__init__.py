"""Storyboard MCP tools."""

"""Storyboard assistant MCP server — transcript analysis and per-scene image/video generation."""

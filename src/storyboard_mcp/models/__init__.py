"""Pydantic models for storyboard data and tool output."""

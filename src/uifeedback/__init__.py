"""uifeedback - MCP server for driving GUI apps under test."""

__version__ = "0.1.0"

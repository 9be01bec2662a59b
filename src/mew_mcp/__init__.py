"""Mew MCP server - exposes the Mew graph note service as agent tools."""

__version__ = "0.1.0"

"""MCP bridge to the DataLens RPC API."""

__version__ = "0.1.0"

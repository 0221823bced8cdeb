"""Unlocker MCP: resumable resolution of hosting links into final download links."""

__version__ = "0.1.0"

"""MCP server for the Orchestrate API."""

from wxomcp.mcp.server import OrchestrateMCPServer, run_mcp_server

__all__ = ["OrchestrateMCPServer", "run_mcp_server"]

"""
Run the FABRIK MCP server from a source checkout.

Equivalent to the installed ``fabrik-mcp`` console script.
"""
from fabrik_mcp.mcp_server import run

if __name__ == "__main__":
    run()

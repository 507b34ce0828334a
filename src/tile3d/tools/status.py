"""Status tool: get_status."""

import json
from mcp.server.fastmcp import FastMCP
from mcp.types import ToolAnnotations

from ..state import state


def register_status_tools(mcp: FastMCP):

    @mcp.tool(annotations=ToolAnnotations(readOnlyHint=True))
    def get_status() -> str:
        """Return a summary of the current session.

        Shows the selected tile, how many vector features are loaded, and the
        per-kind feature counts of the last generated 3D tile.
        """
        return json.dumps(state.summary(), indent=2)

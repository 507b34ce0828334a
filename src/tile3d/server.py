"""MCP server for tile3d.

Registers all tools and runs via stdio transport.
"""

from mcp.server.fastmcp import FastMCP

from .tools.tile import register_tile_tools
from .tools.status import register_status_tools

mcp = FastMCP(
    "tile3d",
    instructions="Convert vector map tiles into 3D tile features: buildings, roads, terrain-hugging paths, instances and labels",
)

register_tile_tools(mcp)
register_status_tools(mcp)


def main():
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()

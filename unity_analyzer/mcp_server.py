"""MCP Server for Unity shader analysis results.

Two tools:
  - list_shaders: Find analyzed shaders by name or keyword
  - shader_details: Shader summary plus every compiled sub-program

Requires: Build the database first with `unity-analyzer analyze <dumps>`

Usage:
    # Run directly (stdio transport)
    python mcp_server.py

    # Add to an MCP client config:
    {
        "mcpServers": {
            "unity-shaders": {
                "command": "unity-analyzer-mcp"
            }
        }
    }
"""

import json
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger("unity-analyzer")

# Support source-based invocation:
#   python /path/to/repo/unity_analyzer/mcp_server.py
if __package__ in (None, ""):
    repo_root = Path(__file__).resolve().parent.parent
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from unity_analyzer.core import DEBUG, get_db_path
from unity_analyzer.store import AnalysisStore

STATUS_URI = "unity://analysis/status"

server = Server("unity-analyzer")

_store = None


def get_store() -> AnalysisStore:
    """Open the analysis database once per process."""
    global _store
    if _store is None:
        db_path = Path(os.environ.get("UNITY_ANALYZER_DB") or get_db_path())
        if not db_path.exists():
            raise FileNotFoundError(
                f"No analysis database at {db_path}. Run 'unity-analyzer analyze' first."
            )
        _store = AnalysisStore(db_path)
    return _store


def list_shaders(name: str = None, keyword: str = None, limit: int = 20) -> dict:
    limit = min(max(1, limit), 200)
    rows = get_store().list_shaders(name=name, keyword=keyword, limit=limit)
    return {"shaders": rows, "count": len(rows)}


def shader_details(shader_id: int) -> dict:
    store = get_store()
    shader = store.get_shader(shader_id)
    if shader is None:
        return {"error": f"Shader not found: {shader_id}"}
    sub_programs = store.get_sub_programs(shader_id)
    return {"shader": shader, "sub_programs": sub_programs}


# =============================================================================
# MCP Tool Definitions
# =============================================================================


@server.list_tools()
async def list_tools() -> list[Tool]:
    """Return available tools."""
    return [
        Tool(
            name="list_shaders",
            description="""List analyzed Unity shaders, largest first.

Examples:
  - name="Standard" → shaders whose name contains "Standard"
  - keyword="FOG_LINEAR" → shaders compiled with that keyword

Returns id, name, decompressed size, sub-shader count, unique program count
and the space-separated keyword list.""",
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {
                        "type": "string",
                        "description": "Substring of the shader name",
                    },
                    "keyword": {
                        "type": "string",
                        "description": "Exact keyword name",
                    },
                    "limit": {
                        "type": "integer",
                        "description": "Maximum results (default 20)",
                        "default": 20,
                    },
                },
            },
        ),
        Tool(
            name="shader_details",
            description="""Get one shader with all of its compiled sub-programs
(pass, sub-program index, hardware tier, shader type, graphics API, keywords).""",
            inputSchema={
                "type": "object",
                "properties": {
                    "shader_id": {
                        "type": "integer",
                        "description": "Shader id from list_shaders",
                    },
                },
                "required": ["shader_id"],
            },
        ),
    ]


@server.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Handle tool calls."""
    try:
        if name == "list_shaders":
            result = list_shaders(
                name=arguments.get("name"),
                keyword=arguments.get("keyword"),
                limit=arguments.get("limit", 20),
            )
        elif name == "shader_details":
            result = shader_details(int(arguments["shader_id"]))
        else:
            result = {"error": f"Unknown tool: {name}"}

        return [
            TextContent(type="text", text=json.dumps(result, indent=2, default=str))
        ]

    except Exception as e:
        logger.debug("Tool %s failed", name, exc_info=True)
        return [TextContent(type="text", text=json.dumps({"error": str(e)}))]


# =============================================================================
# Resources (database status)
# =============================================================================


@server.list_resources()
async def list_resources():
    """Return the database status resource."""
    return [
        {
            "uri": STATUS_URI,
            "name": "Analysis status",
            "description": "Row counts of the shader analysis database",
            "mimeType": "application/json",
        }
    ]


@server.read_resource()
async def read_resource(uri: str):
    """Read database status."""
    if str(uri) == STATUS_URI:
        try:
            return json.dumps(get_store().get_status().to_dict(), indent=2)
        except FileNotFoundError as e:
            return json.dumps({"error": str(e)})

    return json.dumps({"error": f"Unknown resource: {uri}"})


# =============================================================================
# Main
# =============================================================================


def _configure_logging():
    if DEBUG:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s: %(message)s",
            stream=sys.stderr,
        )
    else:
        logging.basicConfig(level=logging.WARNING, stream=sys.stderr)


async def main():
    """Run the MCP server."""
    _configure_logging()

    print("Unity Analyzer MCP Server", file=sys.stderr)
    print("Tools: list_shaders, shader_details", file=sys.stderr)

    try:
        print(f"Database: {get_store().db_path}", file=sys.stderr)
    except FileNotFoundError as e:
        print(f"Warning: {e}", file=sys.stderr)

    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream, write_stream, server.create_initialization_options()
        )


def cli_main():
    """Entry point for the unity-analyzer-mcp command."""
    import asyncio

    asyncio.run(main())


if __name__ == "__main__":
    cli_main()

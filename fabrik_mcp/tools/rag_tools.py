"""
RAG chunk tools for the FABRIK MCP server.

This module provides the MCP tool wrapper for synthetic query generation.
"""
import json
from typing import Any, Dict, List

from mcp.server.fastmcp import Context

from fabrik_mcp.models import ProcessRagChunksRequest
from fabrik_mcp.tools.validation import validate_arguments


async def process_rag_chunks(ctx: Context, chunks: List[Dict[str, Any]], context: str = "") -> str:
    """
    Process RAG chunks and generate synthetic queries that could have retrieved them.

    Each chunk needs score, textLength, fileName, pageLabel and textPreview
    (fullText is optional). The result lists the topics identified, score and
    source statistics, and broad, specific and question-based synthetic queries.

    Args:
        ctx: The MCP server provided context
        chunks: Array of RAG chunk sources
        context: Additional context about the query domain (optional)

    Returns:
        JSON string with the input echo, analysis and synthetic queries
    """
    request = validate_arguments(ProcessRagChunksRequest, {"chunks": chunks, "context": context})

    service = ctx.request_context.lifespan_context.synthetic_query_service
    result = service.process(request.chunks, request.context)

    return json.dumps(result, indent=2)

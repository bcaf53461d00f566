"""
Agent configuration tools for the FABRIK MCP server.

This module provides MCP tool wrappers for fetching remote agent
configurations and for querying the LLM with a configured system prompt.
"""
import json
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import Context

from fabrik_mcp.exceptions import FabrikError
from fabrik_mcp.models import GeminiWithConfigRequest, GetAgentConfigRequest
from fabrik_mcp.tools.validation import internal_error, validate_arguments


async def get_agent_config(
    ctx: Context,
    apiUrl: str,
    agentId: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None
) -> str:
    """
    Fetch agent configuration from API including workflow steps and synthetic data requirements.

    The response is normalized to agent, workflow, output and ragChunks
    sections; the upstream payload is kept under data and rawResponse.

    Args:
        ctx: The MCP server provided context
        apiUrl: API endpoint URL to fetch configuration from
        agentId: Optional agent ID to specify which agent config to fetch
        headers: Optional HTTP headers for the API request

    Returns:
        JSON string with the normalized configuration
    """
    request = validate_arguments(
        GetAgentConfigRequest, {"apiUrl": apiUrl, "agentId": agentId, "headers": headers}
    )

    service = ctx.request_context.lifespan_context.agent_config_service
    try:
        config = await service.fetch_agent_config(
            str(request.api_url), agent_id=request.agent_id, headers=request.headers
        )
    except FabrikError as e:
        raise internal_error(f"Failed to fetch agent configuration: {e}") from e

    return json.dumps(config.to_wire(), indent=2)


async def gemini_with_config(
    ctx: Context,
    configId: str,
    userQuery: str,
    apiUrl: Optional[str] = None,
    ragChunks: Optional[List[Dict[str, Any]]] = None
) -> str:
    """
    Query Gemini with a dynamic system prompt built from a remote agent configuration.

    The configuration is fetched from <apiUrl>/<configId>, rendered into a
    system prompt (optionally with the given RAG chunks as context), and sent
    with the user query. The interaction is recorded in Supabase when configured.

    Args:
        ctx: The MCP server provided context
        configId: Configuration identifier (e.g. 'mortgage-advisor-v2')
        userQuery: The question to answer
        apiUrl: Configuration API base URL (defaults to CONFIG_API_URL)
        ragChunks: Optional RAG chunks to include as contextual information

    Returns:
        JSON string with the configuration, system prompt, model response and metadata
    """
    request = validate_arguments(
        GeminiWithConfigRequest,
        {"configId": configId, "userQuery": userQuery, "apiUrl": apiUrl, "ragChunks": ragChunks}
    )

    service = ctx.request_context.lifespan_context.agent_query_service
    try:
        result = await service.query_with_config(request)
    except FabrikError as e:
        raise internal_error(f"Configured query failed: {e}") from e

    return json.dumps(result, indent=2)

"""
MCP server setup and configuration for FABRIK.

This module sets up the FastMCP server with all tools and manages the application lifecycle.
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from mcp.server.fastmcp import FastMCP

from fabrik_mcp.config import get_settings
from fabrik_mcp.llm_providers import get_llm_provider
from fabrik_mcp.models import FabrikContext
from fabrik_mcp.services.agent_config import AgentConfigService
from fabrik_mcp.services.agent_query import AgentQueryService
from fabrik_mcp.services.database import create_interaction_store
from fabrik_mcp.services.synthetic_queries import SyntheticQueryService

# Import all tools
from fabrik_mcp.tools.utility_tools import echo, add
from fabrik_mcp.tools.rag_tools import process_rag_chunks
from fabrik_mcp.tools.agent_tools import get_agent_config, gemini_with_config

logger = logging.getLogger(__name__)


def build_context(settings) -> FabrikContext:
    """
    Construct every service once and wire their dependencies explicitly.

    Args:
        settings: Application settings

    Returns:
        FabrikContext: The context containing all application dependencies
    """
    synthetic_query_service = SyntheticQueryService.from_settings(settings)
    logger.info("✓ Synthetic query service initialized")

    agent_config_service = AgentConfigService(settings)
    logger.info("✓ Agent configuration service initialized")

    llm_provider = get_llm_provider(settings)
    interaction_store = create_interaction_store(settings)

    agent_query_service = AgentQueryService(
        settings=settings,
        config_service=agent_config_service,
        llm_provider=llm_provider,
        interaction_store=interaction_store
    )
    logger.info("✓ Agent query service initialized")

    return FabrikContext(
        settings=settings,
        synthetic_query_service=synthetic_query_service,
        agent_config_service=agent_config_service,
        agent_query_service=agent_query_service,
        llm_provider=llm_provider,
        interaction_store=interaction_store
    )


@asynccontextmanager
async def fabrik_lifespan(server: FastMCP) -> AsyncIterator[FabrikContext]:
    """
    Manages the application dependencies for the lifetime of the server.

    Args:
        server: The FastMCP server instance

    Yields:
        FabrikContext: The context containing all application dependencies
    """
    logger.info("🚀 Starting MCP server initialization...")
    try:
        settings = get_settings()
        context = build_context(settings)
    except Exception as e:
        logger.error(f"❌ Error during initial setup: {e}")
        raise

    try:
        yield context
    finally:
        logger.info("🧹 Cleaning up resources...")
        if context.interaction_store is not None:
            try:
                await context.interaction_store.drain()
                logger.info("✓ Pending interaction writes flushed")
            except Exception as e:
                logger.error(f"Error flushing interaction writes: {e}")


# Initialize FastMCP server
mcp = FastMCP(
    "fabrik-mcp",
    instructions="MCP server for RAG chunk analysis, synthetic query generation and configured Gemini queries",
    lifespan=fabrik_lifespan,
    host=get_settings().host,
    port=get_settings().port
)

# Register utility tools
mcp.tool()(echo)
mcp.tool()(add)

# Register RAG tools
mcp.tool()(process_rag_chunks)

# Register agent configuration tools
mcp.tool()(get_agent_config)
mcp.tool()(gemini_with_config)


def configure_logging(level: str) -> None:
    """Send logs to stderr; stdout carries the stdio transport."""
    logging.basicConfig(
        level=level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )


async def main():
    """Main entry point for the MCP server."""
    settings = get_settings()
    configure_logging(settings.log_level)

    if settings.transport == 'sse':
        # Run the MCP server with sse transport
        await mcp.run_sse_async()
    else:
        # Run the MCP server with stdio transport
        await mcp.run_stdio_async()


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

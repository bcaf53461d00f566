"""
Configured LLM query service.

Combines the agent configuration, prompt builder, LLM provider and
interaction store behind the gemini_with_config tool.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from fabrik_mcp.config import Settings
from fabrik_mcp.exceptions import LLMQueryError
from fabrik_mcp.llm_providers import LLMProvider
from fabrik_mcp.models import (
    AgentConfiguration, GeminiWithConfigRequest, InteractionRecord, RagChunk, utc_timestamp
)
from fabrik_mcp.services.agent_config import AgentConfigService
from fabrik_mcp.services.database import InteractionStore
from fabrik_mcp.services.prompt_builder import build_system_prompt

logger = logging.getLogger(__name__)


class AgentQueryService:
    """Service answering user queries with a remotely configured agent prompt."""

    def __init__(
        self,
        settings: Settings,
        config_service: AgentConfigService,
        llm_provider: Optional[LLMProvider] = None,
        interaction_store: Optional[InteractionStore] = None
    ):
        """
        Initialize the query service with its collaborators.

        Args:
            settings: Application settings
            config_service: Fetches configurations by id
            llm_provider: Provider used for generation; None disables the tool
            interaction_store: Optional store for recording interactions
        """
        self.settings = settings
        self.config_service = config_service
        self.llm_provider = llm_provider
        self.interaction_store = interaction_store

    @staticmethod
    def resolve_rag_chunks(
        request_chunks: Optional[List[RagChunk]],
        config: AgentConfiguration
    ) -> List[RagChunk]:
        """
        Pick the snippets embedded in the prompt.

        Explicit request chunks win. Otherwise the configuration's own chunks
        are used, skipping entries that do not validate.
        """
        if request_chunks is not None:
            return list(request_chunks)

        chunks: List[RagChunk] = []
        for index, raw in enumerate(config.rag_chunks):
            try:
                chunks.append(RagChunk.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping invalid ragChunks[{index}] in configuration: {e.error_count()} errors")
        return chunks

    async def query_with_config(self, request: GeminiWithConfigRequest) -> Dict[str, Any]:
        """
        Fetch the configuration, build the prompt, and query the LLM.

        Args:
            request: Validated tool request

        Returns:
            Dictionary with the configuration, prompt, response and metadata

        Raises:
            UpstreamRequestError: If the configuration cannot be fetched
            LLMQueryError: If no provider is configured or generation fails
        """
        if self.llm_provider is None:
            raise LLMQueryError(
                "No LLM provider configured. Set GEMINI_API_KEY (or LLM_PROVIDER=openai with OPENAI_API_KEY)."
            )

        api_url = str(request.api_url) if request.api_url else None
        config = await self.config_service.fetch_config_by_id(request.config_id, api_url=api_url)

        rag_chunks = self.resolve_rag_chunks(request.rag_chunks, config)
        system_prompt = build_system_prompt(config, rag_chunks)

        logger.info(
            f"Querying {self.llm_provider.name} for config {request.config_id} "
            f"({len(system_prompt)} prompt chars, {len(rag_chunks)} chunks)"
        )
        llm_response = await self.llm_provider.generate(system_prompt, request.user_query)

        configuration = config.to_wire()
        timestamp = utc_timestamp()

        persistence_scheduled = False
        if self.interaction_store is not None:
            self.interaction_store.record_interaction_background(InteractionRecord(
                config_id=request.config_id,
                user_query=request.user_query,
                response=llm_response.text,
                config_snapshot=configuration,
                created_at=timestamp,
            ))
            persistence_scheduled = True

        return {
            "configId": request.config_id,
            "userQuery": request.user_query,
            "configuration": configuration,
            "systemPrompt": system_prompt,
            "geminiResponse": llm_response.text,
            "metadata": {
                "model": llm_response.model,
                "provider": self.llm_provider.name,
                "promptLength": len(system_prompt),
                "ragChunksIncluded": len(rag_chunks),
                "streamed": llm_response.streamed,
                "persistenceScheduled": persistence_scheduled,
                "timestamp": timestamp,
            },
        }

"""
Pydantic models for the FABRIK MCP server.

This module provides type-safe data models for all MCP tool requests and responses.
Field names are snake_case in Python and camelCase on the wire (aliases), so tool
arguments and JSON results keep the shape MCP clients already send and expect.
"""
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from pydantic import (
    BaseModel, ConfigDict, Field, HttpUrl, StrictFloat, StrictInt, StrictStr, field_validator
)


class WireModel(BaseModel):
    """Base model accepting both field names and camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        """Dump with camelCase keys, dropping unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Utility tool Models
class EchoRequest(WireModel):
    """Request model for the echo tool."""
    text: StrictStr = Field(..., description="Text to echo back")


class AddRequest(WireModel):
    """Request model for the add tool."""
    a: float = Field(..., strict=True, description="First number")
    b: float = Field(..., strict=True, description="Second number")

    @field_validator("a", "b", mode="before")
    @classmethod
    def reject_booleans(cls, v):
        """JSON true/false are not numbers."""
        if isinstance(v, bool):
            raise ValueError("Input should be a valid number")
        return v


# RAG Chunk Models
class RagChunk(WireModel):
    """A scored snippet of retrieved text."""
    score: StrictFloat = Field(..., description="Relevance score")
    text_length: StrictInt = Field(..., alias="textLength", description="Length of text content")
    file_name: StrictStr = Field(..., alias="fileName", description="Source file name")
    page_label: StrictInt = Field(..., alias="pageLabel", description="Page number")
    text_preview: StrictStr = Field(..., alias="textPreview", description="Preview of chunk content")
    full_text: Optional[StrictStr] = Field(default=None, alias="fullText", description="Full text content")


class ProcessRagChunksRequest(WireModel):
    """Request model for synthetic query generation."""
    chunks: List[RagChunk] = Field(..., min_length=1, description="RAG chunk sources")
    context: StrictStr = Field(default="", description="Additional context about the query domain")


class PageRange(WireModel):
    min: int
    max: int


class SourceAnalysis(WireModel):
    """Summary of where a set of chunks came from."""
    unique_files: List[str] = Field(..., alias="uniqueFiles")
    page_range: PageRange = Field(..., alias="pageRange")
    average_text_length: int = Field(..., alias="averageTextLength")


class SyntheticQueries(WireModel):
    """Three buckets of template-generated queries."""
    broad: List[str] = Field(default_factory=list)
    specific: List[str] = Field(default_factory=list)
    question_based: List[str] = Field(default_factory=list, alias="questionBased")


class ChunkAnalysis(WireModel):
    topics_identified: List[str] = Field(..., alias="topicsIdentified")
    average_score: float = Field(..., alias="averageScore")
    sources: SourceAnalysis


# Agent Configuration Models
class GetAgentConfigRequest(WireModel):
    """Request model for fetching an agent configuration."""
    api_url: HttpUrl = Field(..., alias="apiUrl", description="API endpoint URL to fetch configuration from")
    agent_id: Optional[StrictStr] = Field(default=None, alias="agentId", description="Agent ID query parameter")
    headers: Optional[Dict[StrictStr, StrictStr]] = Field(default=None, description="Extra HTTP headers")


class AgentInfo(WireModel):
    name: str = "Unknown Agent"
    description: str = ""


class WorkflowInfo(WireModel):
    steps: List[Any] = Field(default_factory=list)
    description: str = ""


class OutputFormat(WireModel):
    natural_language_format: str = Field(default="", alias="naturalLanguageFormat")
    expected_format: str = Field(default="json", alias="expectedFormat")
    synthetic_records_count: int = Field(default=10, alias="syntheticRecordsCount")


class AgentConfiguration(WireModel):
    """Normalized agent configuration built from an upstream payload."""
    timestamp: str = Field(..., description="ISO-8601 time the configuration was fetched")
    api_url: str = Field(..., alias="apiUrl", description="URL the configuration was fetched from")
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    data: Dict[str, Any] = Field(default_factory=dict, description="Upstream payload")
    agent: AgentInfo = Field(default_factory=AgentInfo)
    workflow: WorkflowInfo = Field(default_factory=WorkflowInfo)
    output: OutputFormat = Field(default_factory=OutputFormat)
    rag_chunks: List[Any] = Field(default_factory=list, alias="ragChunks")
    system_prompt_template: str = Field(default="", alias="systemPromptTemplate")
    compliance_rules: List[str] = Field(default_factory=list, alias="complianceRules")
    raw_response: Dict[str, Any] = Field(default_factory=dict, alias="rawResponse")

    def to_wire(self) -> Dict[str, Any]:
        # agentId is always emitted, null when absent
        return self.model_dump(mode="json", by_alias=True)


# Configured LLM query Models
class GeminiWithConfigRequest(WireModel):
    """Request model for a configuration-driven LLM query."""
    config_id: StrictStr = Field(..., alias="configId", min_length=1, description="Configuration identifier")
    user_query: StrictStr = Field(..., alias="userQuery", min_length=1, description="Question for the model")
    api_url: Optional[HttpUrl] = Field(default=None, alias="apiUrl", description="Configuration API base URL")
    rag_chunks: Optional[List[RagChunk]] = Field(default=None, alias="ragChunks", description="Context snippets")


class LLMResponse(BaseModel):
    """Text produced by an LLM provider."""
    text: str
    model: str
    streamed: bool = Field(..., description="Whether the streaming call succeeded")


class InteractionRecord(BaseModel):
    """Row written to the interactions table."""
    config_id: str
    user_query: str
    response: str
    config_snapshot: Dict[str, Any]
    created_at: str


# Application Context Models
class FabrikContext(BaseModel):
    """Context model containing all application dependencies."""
    settings: Any = Field(..., description="Application settings")

    synthetic_query_service: Any = Field(..., description="Topic and synthetic query heuristic")
    agent_config_service: Any = Field(..., description="Remote agent configuration client")
    agent_query_service: Any = Field(..., description="Configured LLM query orchestration")

    # Optional integrations, None when their credentials are missing
    llm_provider: Optional[Any] = Field(None, description="LLM provider")
    interaction_store: Optional[Any] = Field(None, description="Supabase interaction store")

    model_config = ConfigDict(arbitrary_types_allowed=True)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

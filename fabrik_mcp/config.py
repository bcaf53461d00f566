"""
Configuration management for the FABRIK MCP server.

This module centralizes all environment variable handling and provides
type-safe configuration using Pydantic Settings.
"""
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TOPIC_KEYWORDS = [
    "borrower", "loan", "mortgage", "income", "eligibility", "requirements",
    "rental", "property", "financing", "homeready", "qualifying", "ltv",
    "cltv", "hcltv", "subordinate", "buydown", "appraisal", "credit",
]

DEFAULT_QUERY_TRIGGERS = {
    "Monthly Qualifying Rental Income": "How to calculate monthly qualifying rental income?",
    "Borrower Eligibility Requirements": "What are the general borrower eligibility requirements?",
    "HomeReady Transactions": "What are HomeReady transaction requirements for high LTV ratios?",
    "first-time homebuyer": "What are the first-time homebuyer criteria?",
    "subordinate financing": "Rules for subordinate financing in mortgages",
    "credit report": "Credit report requirements for loan applications",
}


class Settings(BaseSettings):
    """
    Application settings with validation.

    Every field has a default so the server starts with no environment at all;
    the LLM and persistence integrations are simply unavailable until their
    credentials are provided.
    """

    # MCP Server Configuration
    host: str = Field(default="0.0.0.0", description="Host to bind the SSE transport to")
    port: int = Field(default=8051, ge=1, le=65535, description="Port for the SSE transport")
    transport: str = Field(default="stdio", description="MCP transport: stdio or sse")
    log_level: str = Field(default="INFO", description="Root log level")

    # LLM Configuration
    llm_provider: str = Field(default="gemini", description="LLM provider: gemini or openai")
    gemini_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("gemini_api_key", "google_api_key"),
        description="Google Gemini API key",
    )
    gemini_model: str = Field(default="gemini-2.5-pro", description="Gemini model name")
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    openai_model: str = Field(default="gpt-4o-mini", description="OpenAI model name")

    # Agent configuration API
    config_api_url: str = Field(
        default="http://localhost:3003/config",
        description="Base URL used by gemini_with_config when no apiUrl is given",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="Outbound HTTP timeout in seconds")
    user_agent: str = Field(default="MCP-RAG-Processor/1.0", description="User-Agent for outbound requests")

    # Supabase Configuration - OPTIONAL (interaction persistence)
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("supabase_key", "supabase_service_key", "supabase_anon_key"),
        description="Supabase service role or anon key",
    )
    enable_persistence: bool = Field(default=True, description="Record LLM interactions when Supabase is configured")
    interactions_table: str = Field(default="gemini_interactions", description="Table receiving interaction records")

    # Synthetic query heuristic
    topic_keywords: List[str] = Field(
        default_factory=lambda: list(DEFAULT_TOPIC_KEYWORDS),
        description="Vocabulary matched against chunk previews during topic extraction",
    )
    specific_query_triggers: Dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_QUERY_TRIGGERS),
        description="Literal preview substrings mapped to the specific query they produce",
    )
    default_topic: str = Field(default="lending", description="Topic substituted when too few topics are found")

    @field_validator('transport')
    @classmethod
    def validate_transport(cls, v):
        """Only stdio and sse transports are supported."""
        v = v.lower()
        if v not in ('stdio', 'sse'):
            raise ValueError('Transport must be either stdio or sse')
        return v

    @field_validator('llm_provider')
    @classmethod
    def normalize_provider(cls, v):
        return v.lower()

    @field_validator('enable_persistence', mode='before')
    @classmethod
    def parse_boolean_strings(cls, v):
        """Parse string boolean values from environment variables."""
        if isinstance(v, str):
            return v.lower() in ('true', '1', 'yes', 'on')
        return v

    @property
    def persistence_configured(self) -> bool:
        return bool(self.enable_persistence and self.supabase_url and self.supabase_key)

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
        populate_by_name=True
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once per application run.

    Returns:
        Settings: Validated settings instance
    """
    return Settings()

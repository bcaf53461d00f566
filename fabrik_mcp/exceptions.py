"""
Exception types for the FABRIK MCP server.

Upstream failures (configuration API, LLM API) are raised as these typed
errors by the services and converted into MCP protocol errors by the tools.
"""
from typing import Optional


class FabrikError(Exception):
    """Base class for FABRIK MCP errors."""


class UpstreamRequestError(FabrikError):
    """Raised when an outbound request cannot be completed or decoded."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class ConfigFetchError(UpstreamRequestError):
    """Raised when the configuration API answers with a non-2xx status."""

    def __init__(self, status_code: int, reason: str):
        super().__init__(f"API request failed: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason


class LLMQueryError(FabrikError):
    """Raised when no LLM provider is available or the provider call fails."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

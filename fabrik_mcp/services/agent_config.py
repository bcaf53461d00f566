"""
Agent configuration service for the FABRIK MCP server.

Fetches agent configurations from a remote HTTP API and normalizes the
payload into the AgentConfiguration shape. Upstream APIs spell the same field
several ways, so normalization is driven by one explicit mapping table.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, urlencode, urlsplit, urlunsplit, parse_qsl

import requests

from fabrik_mcp.config import Settings
from fabrik_mcp.exceptions import ConfigFetchError, UpstreamRequestError
from fabrik_mcp.models import AgentConfiguration, utc_timestamp

logger = logging.getLogger(__name__)

_MISSING = object()

# canonical field -> (accepted source key paths in priority order, default)
CONFIG_FIELD_SOURCES: Dict[Tuple[str, ...], Tuple[Tuple[Tuple[str, ...], ...], Any]] = {
    ("agent", "name"): ((("agent", "name"), ("agentName",)), "Unknown Agent"),
    ("agent", "description"): ((("agent", "description"), ("description",)), ""),
    ("workflow", "steps"): ((("workflow", "steps"), ("workflowSteps",)), []),
    ("workflow", "description"): ((("workflow", "description"), ("workflowDescription",)), ""),
    ("output", "naturalLanguageFormat"): (
        (("output", "naturalLanguageFormat"), ("naturalLanguageOutput",)), ""
    ),
    ("output", "expectedFormat"): ((("output", "expectedFormat"), ("expectedFormat",)), "json"),
    ("output", "syntheticRecordsCount"): (
        (("output", "syntheticRecordsCount"), ("numberOfSyntheticRecords",)), 10
    ),
    ("ragChunks",): ((("ragChunks",), ("chunks",)), []),
    ("systemPromptTemplate",): ((("systemPromptTemplate",), ("systemPrompt",)), ""),
    ("complianceRules",): ((("complianceRules",),), []),
}

# fields where a blank string counts as absent
BLANK_IS_MISSING = {("agent", "name")}


def _lookup(data: Dict[str, Any], path: Tuple[str, ...]) -> Any:
    current: Any = data
    for key in path:
        if not isinstance(current, dict) or key not in current:
            return _MISSING
        current = current[key]
    return current


def _coerce(value: Any, default: Any) -> Any:
    """Bring a tolerated upstream value to the type of its default."""
    if isinstance(default, str):
        return value if isinstance(value, str) else str(value)
    if isinstance(default, list):
        return list(value) if isinstance(value, (list, tuple)) else default
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    return value


def normalize_config(data: Dict[str, Any], api_url: str, agent_id: Optional[str] = None) -> AgentConfiguration:
    """
    Normalize an upstream configuration payload.

    For every canonical field the source paths are tried in order and the first
    one that is present and not None wins; otherwise the default applies. For
    fields in BLANK_IS_MISSING a blank string is skipped as well.

    Args:
        data: Decoded JSON object returned by the configuration API
        api_url: URL the payload was fetched from
        agent_id: Agent identifier that was requested, if any

    Returns:
        AgentConfiguration with the raw payload kept under data and rawResponse
    """
    normalized: Dict[str, Any] = {}

    for target, (sources, default) in CONFIG_FIELD_SOURCES.items():
        value = default
        for path in sources:
            candidate = _lookup(data, path)
            if candidate is _MISSING or candidate is None:
                continue
            if target in BLANK_IS_MISSING and isinstance(candidate, str) and not candidate.strip():
                continue
            value = _coerce(candidate, default)
            break

        container = normalized
        for key in target[:-1]:
            container = container.setdefault(key, {})
        container[target[-1]] = list(value) if isinstance(value, list) else value

    normalized["complianceRules"] = [str(rule) for rule in normalized["complianceRules"]]

    return AgentConfiguration(
        timestamp=utc_timestamp(),
        apiUrl=api_url,
        agentId=agent_id,
        data=data,
        rawResponse=data,
        **normalized
    )


class AgentConfigService:
    """
    Service for fetching agent configurations over HTTP.

    The blocking requests call runs in a worker thread so the event loop keeps
    serving other tool calls while a fetch is in flight.
    """

    def __init__(self, settings: Settings):
        """
        Initialize the agent configuration service.

        Args:
            settings: Application settings (timeout, user agent, default API URL)
        """
        self.settings = settings

    def _build_headers(self, headers: Optional[Dict[str, str]]) -> Dict[str, str]:
        merged = {
            "Content-Type": "application/json",
            "User-Agent": self.settings.user_agent,
        }
        merged.update(headers or {})
        return merged

    def _get_json(self, url: str, headers: Optional[Dict[str, str]]) -> Dict[str, Any]:
        try:
            response = requests.get(
                url,
                headers=self._build_headers(headers),
                timeout=self.settings.request_timeout
            )
        except requests.RequestException as e:
            logger.error(f"Configuration request to {url} failed: {e}")
            raise UpstreamRequestError(f"Request to {url} failed: {e}", cause=e) from e

        if not 200 <= response.status_code < 300:
            logger.error(f"Configuration API returned {response.status_code} for {url}")
            raise ConfigFetchError(response.status_code, response.reason or "")

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamRequestError(f"Response from {url} is not valid JSON", cause=e) from e

        if not isinstance(data, dict):
            raise UpstreamRequestError(f"Response from {url} is not a JSON object")
        return data

    @staticmethod
    def with_query_param(api_url: str, name: str, value: str) -> str:
        """Set a query parameter on a URL, replacing any existing value."""
        parts = urlsplit(api_url)
        query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
        query.append((name, value))
        return urlunsplit(parts._replace(query=urlencode(query)))

    @staticmethod
    def with_path_segment(api_url: str, segment: str) -> str:
        """Append a URL-quoted path segment to a URL."""
        parts = urlsplit(api_url)
        path = f"{parts.path.rstrip('/')}/{quote(segment, safe='')}"
        return urlunsplit(parts._replace(path=path))

    async def fetch_agent_config(
        self,
        api_url: str,
        agent_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> AgentConfiguration:
        """
        Fetch a configuration, passing the agent identifier as a query parameter.

        Args:
            api_url: Configuration API endpoint
            agent_id: Optional agent identifier, sent as ?agentId=
            headers: Optional extra HTTP headers

        Returns:
            Normalized AgentConfiguration

        Raises:
            ConfigFetchError: On a non-2xx response
            UpstreamRequestError: On network failure or an undecodable body
        """
        url = self.with_query_param(api_url, "agentId", agent_id) if agent_id else api_url
        logger.info(f"Fetching agent configuration from {url}")

        data = await asyncio.to_thread(self._get_json, url, headers)
        return normalize_config(data, api_url=url, agent_id=agent_id)

    async def fetch_config_by_id(
        self,
        config_id: str,
        api_url: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None
    ) -> AgentConfiguration:
        """
        Fetch a configuration addressed as <api_url>/<config_id>.

        Args:
            config_id: Configuration identifier appended as a path segment
            api_url: Base URL, defaults to settings.config_api_url
            headers: Optional extra HTTP headers

        Returns:
            Normalized AgentConfiguration with agentId set to config_id
        """
        url = self.with_path_segment(api_url or self.settings.config_api_url, config_id)
        logger.info(f"Fetching configuration {config_id} from {url}")

        data = await asyncio.to_thread(self._get_json, url, headers)
        return normalize_config(data, api_url=url, agent_id=config_id)

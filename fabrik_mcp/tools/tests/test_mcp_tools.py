"""
Tests for MCP tool wrappers.

This module tests the tool functions registered on the server: argument
validation, delegation to the services in the lifespan context, and the
conversion of service failures into MCP errors.
"""
import pytest
from unittest.mock import Mock, AsyncMock, patch
import json

from mcp.shared.exceptions import McpError
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS

from fabrik_mcp.config import Settings
from fabrik_mcp.exceptions import ConfigFetchError, LLMQueryError
from fabrik_mcp.services.agent_config import AgentConfigService
from fabrik_mcp.services.synthetic_queries import SyntheticQueryService
from fabrik_mcp.tools.utility_tools import echo, add
from fabrik_mcp.tools.rag_tools import process_rag_chunks
from fabrik_mcp.tools.agent_tools import get_agent_config, gemini_with_config


CHUNK = {
    "score": 0.92,
    "textLength": 1800,
    "fileName": "guide.pdf",
    "pageLabel": 156,
    "textPreview": "# Monthly Qualifying Rental Income\nRental property income for the borrower"
}


@pytest.fixture
def mock_context():
    """Create mock MCP context for testing."""
    context = Mock()
    context.request_context = Mock()
    context.request_context.lifespan_context = Mock()

    settings = Mock(spec=Settings)
    settings.user_agent = "MCP-RAG-Processor/1.0"
    settings.request_timeout = 30.0
    settings.config_api_url = "http://localhost:3003/config"

    lifespan_context = context.request_context.lifespan_context
    lifespan_context.settings = settings
    lifespan_context.synthetic_query_service = SyntheticQueryService()
    lifespan_context.agent_config_service = AgentConfigService(settings)

    agent_query_service = Mock()
    agent_query_service.query_with_config = AsyncMock()
    lifespan_context.agent_query_service = agent_query_service

    return context


def make_response(status_code=200, payload=None, reason="OK"):
    response = Mock()
    response.status_code = status_code
    response.reason = reason
    response.json.return_value = payload if payload is not None else {}
    return response


class TestUtilityTools:
    """Test echo and add."""

    async def test_echo(self):
        assert await echo("hello") == "Echo: hello"

    async def test_echo_empty(self):
        assert await echo("") == "Echo: "

    async def test_add_integers(self):
        assert await add(2, 3) == "2 + 3 = 5"

    async def test_add_decimals(self):
        assert await add(1.5, 2.25) == "1.5 + 2.25 = 3.75"

    async def test_add_negative(self):
        assert await add(-4, 1.5) == "-4 + 1.5 = -2.5"

    @pytest.mark.parametrize("a", ["1", True, None, [1]])
    async def test_add_rejects_non_numbers(self, a):
        """Numeric strings and booleans are not coerced."""
        with pytest.raises(McpError) as exc_info:
            await add(a, 2)

        assert exc_info.value.error.code == INVALID_PARAMS
        assert exc_info.value.error.message.startswith("Invalid parameters: a: ")

    async def test_add_names_every_bad_argument(self):
        with pytest.raises(McpError) as exc_info:
            await add("3.5", "x")

        message = exc_info.value.error.message
        assert "a: " in message
        assert "b: " in message

    @pytest.mark.parametrize("text", [5, None, ["hello"]])
    async def test_echo_rejects_non_strings(self, text):
        with pytest.raises(McpError) as exc_info:
            await echo(text)

        assert exc_info.value.error.code == INVALID_PARAMS
        assert exc_info.value.error.message.startswith("Invalid parameters: text: ")

    async def test_add_through_server_keeps_raw_arguments(self):
        """The server passes arguments through unconverted, so a numeric string is still rejected."""
        from fabrik_mcp.mcp_server import mcp

        with pytest.raises(Exception) as exc_info:
            await mcp.call_tool("add", {"a": "1", "b": 2})

        assert "Invalid parameters: a: " in str(exc_info.value)

    async def test_boolean_through_server_is_rejected(self):
        from fabrik_mcp.mcp_server import mcp

        with pytest.raises(Exception) as exc_info:
            await mcp.call_tool("add", {"a": True, "b": 2})

        assert "Invalid parameters: a: " in str(exc_info.value)

    async def test_utility_schemas_declare_json_types(self):
        from fabrik_mcp.mcp_server import mcp

        tools = {tool.name: tool for tool in await mcp.list_tools()}

        add_schema = tools["add"].inputSchema
        assert add_schema["properties"]["a"]["type"] == "number"
        assert add_schema["properties"]["b"]["type"] == "number"
        assert set(add_schema["required"]) == {"a", "b"}
        assert tools["echo"].inputSchema["properties"]["text"]["type"] == "string"


class TestProcessRagChunks:
    """Test the process_rag_chunks tool wrapper."""

    async def test_process_rag_chunks_success(self, mock_context):
        result = await process_rag_chunks(mock_context, [CHUNK], "mortgage lending")

        data = json.loads(result)
        assert data["input"]["context"] == "mortgage lending"
        assert data["input"]["metadata"]["chunksProcessed"] == 1
        assert data["output"]["analysis"]["averageScore"] == 0.92
        assert data["output"]["analysis"]["topicsIdentified"][0] == "monthly qualifying rental income"
        assert data["output"]["syntheticQueries"]["specific"] == [
            "How to calculate monthly qualifying rental income?"
        ]

    async def test_invalid_chunk_field_is_named(self, mock_context):
        """A wrongly typed field is reported with its path."""
        with pytest.raises(McpError) as exc_info:
            await process_rag_chunks(mock_context, [{**CHUNK, "score": "high"}])

        assert exc_info.value.error.code == INVALID_PARAMS
        assert "chunks.0.score" in exc_info.value.error.message

    async def test_missing_chunk_field_is_named(self, mock_context):
        chunk = {key: value for key, value in CHUNK.items() if key != "fileName"}

        with pytest.raises(McpError) as exc_info:
            await process_rag_chunks(mock_context, [chunk])

        assert "chunks.0.fileName" in exc_info.value.error.message

    async def test_empty_chunks_rejected(self, mock_context):
        with pytest.raises(McpError) as exc_info:
            await process_rag_chunks(mock_context, [])

        assert exc_info.value.error.code == INVALID_PARAMS
        assert exc_info.value.error.message.startswith("Invalid parameters: chunks")


class TestGetAgentConfig:
    """Test the get_agent_config tool wrapper."""

    @patch('fabrik_mcp.services.agent_config.requests.get')
    async def test_get_agent_config_success(self, mock_get, mock_context):
        mock_get.return_value = make_response(payload={
            "agent": {"name": "Mortgage Lending Assistant"},
            "output": {"syntheticRecordsCount": 25}
        })

        result = await get_agent_config(mock_context, "http://localhost:3002", agentId="mortgage-agent")

        data = json.loads(result)
        assert data["agent"]["name"] == "Mortgage Lending Assistant"
        assert data["output"]["syntheticRecordsCount"] == 25
        assert data["agentId"] == "mortgage-agent"
        assert "agentId=mortgage-agent" in data["apiUrl"]

    @patch('fabrik_mcp.services.agent_config.requests.get')
    async def test_missing_name_gets_placeholder(self, mock_get, mock_context):
        mock_get.return_value = make_response(payload={"description": "no name here"})

        data = json.loads(await get_agent_config(mock_context, "http://localhost:3002"))

        assert data["agent"]["name"] == "Unknown Agent"
        assert data["agentId"] is None

    @patch('fabrik_mcp.services.agent_config.requests.get')
    async def test_http_error_becomes_internal_error(self, mock_get, mock_context):
        mock_get.return_value = make_response(status_code=404, reason="Not Found")

        with pytest.raises(McpError) as exc_info:
            await get_agent_config(mock_context, "http://localhost:3002")

        assert exc_info.value.error.code == INTERNAL_ERROR
        assert exc_info.value.error.message.startswith("Failed to fetch agent configuration:")
        assert "404" in exc_info.value.error.message

    async def test_invalid_url_rejected(self, mock_context):
        with pytest.raises(McpError) as exc_info:
            await get_agent_config(mock_context, "not a url")

        assert exc_info.value.error.code == INVALID_PARAMS
        assert "apiUrl" in exc_info.value.error.message


class TestGeminiWithConfig:
    """Test the gemini_with_config tool wrapper."""

    async def test_gemini_with_config_success(self, mock_context):
        service = mock_context.request_context.lifespan_context.agent_query_service
        service.query_with_config.return_value = {
            "configId": "mortgage-advisor-v2",
            "geminiResponse": "45%",
            "metadata": {"streamed": True}
        }

        result = await gemini_with_config(
            mock_context, "mortgage-advisor-v2", "What is the max DTI?", ragChunks=[CHUNK]
        )

        data = json.loads(result)
        assert data["geminiResponse"] == "45%"
        request = service.query_with_config.await_args.args[0]
        assert request.config_id == "mortgage-advisor-v2"
        assert request.user_query == "What is the max DTI?"
        assert request.api_url is None
        assert request.rag_chunks[0].file_name == "guide.pdf"

    async def test_empty_user_query_rejected(self, mock_context):
        with pytest.raises(McpError) as exc_info:
            await gemini_with_config(mock_context, "mortgage-advisor-v2", "")

        assert exc_info.value.error.code == INVALID_PARAMS
        assert "userQuery" in exc_info.value.error.message
        mock_context.request_context.lifespan_context.agent_query_service.query_with_config.assert_not_awaited()

    async def test_config_fetch_failure(self, mock_context):
        service = mock_context.request_context.lifespan_context.agent_query_service
        service.query_with_config.side_effect = ConfigFetchError(500, "Internal Server Error")

        with pytest.raises(McpError) as exc_info:
            await gemini_with_config(mock_context, "mortgage-advisor-v2", "question")

        assert exc_info.value.error.code == INTERNAL_ERROR
        assert "500" in exc_info.value.error.message

    async def test_llm_failure(self, mock_context):
        service = mock_context.request_context.lifespan_context.agent_query_service
        service.query_with_config.side_effect = LLMQueryError("gemini request failed: quota exceeded")

        with pytest.raises(McpError) as exc_info:
            await gemini_with_config(mock_context, "mortgage-advisor-v2", "question")

        assert exc_info.value.error.message == "Configured query failed: gemini request failed: quota exceeded"


class TestServerRegistration:
    """Test the tools exposed by the server."""

    async def test_all_tools_registered(self):
        from fabrik_mcp.mcp_server import mcp

        tools = await mcp.list_tools()

        assert {tool.name for tool in tools} == {
            "echo", "add", "process_rag_chunks", "get_agent_config", "gemini_with_config"
        }

    async def test_context_parameter_hidden_from_schema(self):
        from fabrik_mcp.mcp_server import mcp

        tools = {tool.name: tool for tool in await mcp.list_tools()}
        properties = tools["gemini_with_config"].inputSchema["properties"]

        assert "ctx" not in properties
        assert {"configId", "userQuery", "apiUrl", "ragChunks"} <= set(properties)

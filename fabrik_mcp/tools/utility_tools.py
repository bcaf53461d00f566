"""
Utility tools for the FABRIK MCP server.

Trivial tools used to check protocol conformance of MCP clients.
"""
from typing import Annotated, Any

from pydantic import WithJsonSchema

from fabrik_mcp.models import AddRequest, EchoRequest
from fabrik_mcp.tools.validation import validate_arguments

# Arguments reach the tool unconverted and are checked by the strict request
# models; the advertised schema still declares the expected JSON type.
Number = Annotated[Any, WithJsonSchema({"type": "number"})]
Text = Annotated[Any, WithJsonSchema({"type": "string"})]


def _format_number(value: float) -> str:
    value = float(value)
    return str(int(value)) if value.is_integer() else repr(value)


async def echo(text: Text) -> str:
    """
    Echo back the input text.

    Args:
        text: Text to echo back

    Returns:
        The text prefixed with "Echo: "
    """
    request = validate_arguments(EchoRequest, {"text": text})
    return f"Echo: {request.text}"


async def add(a: Number, b: Number) -> str:
    """
    Add two numbers together.

    Args:
        a: First number
        b: Second number

    Returns:
        The sum written as "a + b = result"
    """
    request = validate_arguments(AddRequest, {"a": a, "b": b})
    return f"{_format_number(request.a)} + {_format_number(request.b)} = {_format_number(request.a + request.b)}"

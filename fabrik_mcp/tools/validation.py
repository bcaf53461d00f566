"""
Argument validation and error conversion for the MCP tools.
"""
from typing import Any, Dict, Type, TypeVar

from mcp.shared.exceptions import McpError
from mcp.types import ErrorData, INTERNAL_ERROR, INVALID_PARAMS
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def format_validation_error(error: ValidationError) -> str:
    """Render every failing field as '<dotted.path>: <reason>'."""
    issues = []
    for detail in error.errors():
        path = ".".join(str(part) for part in detail["loc"]) or "arguments"
        issues.append(f"{path}: {detail['msg']}")
    return ", ".join(issues)


def invalid_params(message: str) -> McpError:
    return McpError(ErrorData(code=INVALID_PARAMS, message=f"Invalid parameters: {message}"))


def internal_error(message: str) -> McpError:
    return McpError(ErrorData(code=INTERNAL_ERROR, message=message))


def validate_arguments(model: Type[ModelT], arguments: Dict[str, Any]) -> ModelT:
    """
    Validate raw tool arguments against a request model.

    Arguments left as None are treated as omitted so optional fields keep
    their defaults.

    Raises:
        McpError: INVALID_PARAMS naming each offending field
    """
    provided = {key: value for key, value in arguments.items() if value is not None}
    try:
        return model.model_validate(provided)
    except ValidationError as e:
        raise invalid_params(format_validation_error(e)) from e

"""Tool registration and per-request toolset composition."""

import importlib
import inspect
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, get_type_hints

from pydantic import ConfigDict, Field, create_model

from chatgate.tools.base import Tool, ToolFunction, ToolSchema

if TYPE_CHECKING:
    from chatgate.config.schema import ToolsConfig
    from chatgate.llm.registry import ModelConfig

DEEP_RESEARCH_TOOL = "deepresearch"

BUILTIN_TOOL_MODULES = (
    "chatgate.tools.clock",
    "chatgate.tools.calculator",
    "chatgate.tools.web_search",
    "chatgate.tools.scrape",
    "chatgate.tools.code_execution",
    "chatgate.tools.email",
    "chatgate.tools.deep_research",
)

# Global tool registry
_TOOLS: dict[str, Tool] = {}


def _param_description(fn: ToolFunction, param_name: str) -> str:
    """Pull ``param_name: description`` out of the docstring's Args block."""
    if fn.__doc__:
        for line in fn.__doc__.split("\n"):
            line = line.strip()
            if line.startswith(f"{param_name}:"):
                return line[len(param_name) + 1 :].strip()
    return f"Parameter {param_name}"


def tool(
    description: str,
    name: str | None = None,
) -> Callable[[ToolFunction], ToolFunction]:
    """Decorator to register a function as a tool.

    Introspects the function signature and docstring to build both the JSON
    schema shown to the model and the pydantic model used to validate the
    model's arguments.

    Args:
        description: Human-readable description of what the tool does
        name: Tool name exposed to the model (defaults to the function name)

    Returns:
        Decorator function

    Example:
        @tool(description="Scrape visible text from a web page")
        async def scrape(url: str) -> str:
            '''Fetch a page.

            Args:
                url: The URL of the web page to scrape
            '''
            ...
    """

    def decorator(fn: ToolFunction) -> ToolFunction:
        hints = get_type_hints(fn)
        sig = inspect.signature(fn)
        tool_name = name or fn.__name__

        fields: dict[str, Any] = {}
        for param_name, param in sig.parameters.items():
            required = param.default is inspect.Parameter.empty
            fields[param_name] = (
                hints.get(param_name, str),
                Field(
                    default=... if required else param.default,
                    description=_param_description(fn, param_name),
                ),
            )

        input_model = create_model(
            f"{tool_name}_input",
            __config__=ConfigDict(extra="forbid"),
            **fields,
        )

        schema = ToolSchema(name=tool_name, description=description, input_model=input_model)
        _TOOLS[tool_name] = Tool(schema=schema, fn=fn)

        return fn

    return decorator


def get_tool(name: str) -> Tool:
    """Get a registered tool by name.

    Raises:
        KeyError: If tool not found
    """
    return _TOOLS[name]


def get_all_tools() -> dict[str, Tool]:
    """Get all registered tools."""
    return _TOOLS.copy()


def compose_toolset(
    model: "ModelConfig",
    deepresearch: bool = False,
    enabled: "ToolsConfig | None" = None,
) -> list[Tool]:
    """Select the tools offered to one run.

    A model without tool support gets nothing. Otherwise every enabled base
    tool is offered, plus the deep research tool when the caller asked for it.

    Args:
        model: Selected model configuration
        deepresearch: Whether the request opted into deep research
        enabled: Per-tool enable flags (None = all enabled)

    Returns:
        Tools in registration order
    """
    if not model.supports_tools:
        return []

    selected = []
    for tool_name, tool_obj in _TOOLS.items():
        if tool_name == DEEP_RESEARCH_TOOL:
            if deepresearch:
                selected.append(tool_obj)
            continue
        if enabled is not None and not getattr(enabled, tool_name, True):
            continue
        selected.append(tool_obj)

    return selected


def load_builtin_tools() -> None:
    """Import the built-in tool modules so their decorators register them."""
    for module in BUILTIN_TOOL_MODULES:
        importlib.import_module(module)


def clear_tools() -> None:
    """Clear all registered tools. Used for testing."""
    _TOOLS.clear()

"""Base types for the tool system."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

# Tool function signature: async function returning a JSON-serializable result
ToolFunction = Callable[..., Awaitable[Any]]


def _strip_titles(node: Any) -> Any:
    """Drop pydantic's generated ``title`` keys; models only need the shape."""
    if isinstance(node, dict):
        return {key: _strip_titles(value) for key, value in node.items() if key != "title"}
    if isinstance(node, list):
        return [_strip_titles(item) for item in node]
    return node


@dataclass(frozen=True)
class ToolSchema:
    """What the model sees of a tool: a name, a description and an argument model."""

    name: str
    description: str
    input_model: type[BaseModel]

    def parameters(self) -> dict[str, Any]:
        """JSON Schema object for the tool's arguments."""
        schema = _strip_titles(self.input_model.model_json_schema())
        schema.setdefault("properties", {})
        schema.setdefault("required", [])
        schema.pop("additionalProperties", None)
        return schema

    def to_openai_format(self) -> dict[str, Any]:
        """Convert to the OpenAI function calling format used by every backend."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters(),
            },
        }


@dataclass
class Tool:
    """A registered tool.

    Arguments pass through :meth:`validate` before :meth:`execute`; a
    ``pydantic.ValidationError`` there means the model sent arguments that
    do not match the schema.
    """

    schema: ToolSchema
    fn: ToolFunction

    @property
    def name(self) -> str:
        return self.schema.name

    def validate(self, arguments: Any) -> dict[str, Any]:
        """Validate raw arguments and return them as keyword arguments.

        Raises:
            pydantic.ValidationError: If the arguments do not match the schema
        """
        validated = self.schema.input_model.model_validate(
            arguments if arguments is not None else {}
        )
        return {name: getattr(validated, name) for name in type(validated).model_fields}

    async def execute(self, **kwargs: Any) -> Any:
        """Run the tool with validated arguments.

        Raises:
            ToolExecutionError: If the tool fails in an expected way
        """
        return await self.fn(**kwargs)

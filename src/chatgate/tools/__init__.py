"""Built-in tool implementations for chatgate agents.

Tools are registered via the ``@tool`` decorator, which derives both the
JSON Schema shown to the model and the pydantic model that validates the
model's arguments from the function signature.

Available tools:

- **time** - Current date and time
- **calculate** - Arithmetic on numbers with + - * / and parentheses
- **search** - DuckDuckGo web search
- **scrape** - Visible text of a web page
- **code_executor** - Run bash / python / node snippets (disabled by default)
- **send_email** - Simulated email delivery
- **deepresearch** - Multi-step research scaffold, offered only on request

Usage::

    from chatgate.tools.registry import compose_toolset, load_builtin_tools

    load_builtin_tools()
    tools = compose_toolset(model_config, deepresearch=False)
"""

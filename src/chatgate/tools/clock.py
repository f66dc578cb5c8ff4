"""Current date and time tool."""

from datetime import datetime, timezone
from typing import Any

from chatgate.tools.registry import tool


@tool(description="Get the current date and time", name="time")
async def current_time() -> dict[str, Any]:
    """Return the current time in UTC and in the server's local zone."""
    now = datetime.now(timezone.utc)
    local = now.astimezone()
    return {
        "currentTime": now.isoformat(),
        "formatted": local.strftime("%A, %B %d, %Y %I:%M:%S %p %Z"),
    }

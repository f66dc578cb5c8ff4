"""Simulated email tool.

Nothing is sent: the message is logged and acknowledged. Wire a real
provider in :func:`deliver` to send mail for real.
"""

import asyncio
import logging
import re
from typing import Any

from chatgate.errors import ToolExecutionError
from chatgate.tools.registry import tool

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


async def deliver(to: str, subject: str, body: str) -> None:
    """Log the email in place of delivering it."""
    logger.info(f"Simulated email to={to!r} subject={subject!r} ({len(body)} chars)")
    await asyncio.sleep(0)


@tool(description="Send an email to a specified recipient with a subject and body")
async def send_email(to: str, subject: str, body: str) -> dict[str, Any]:
    """Send an email.

    Args:
        to: The recipient's email address
        subject: The subject of the email
        body: The body content of the email
    """
    if not EMAIL_PATTERN.match(to):
        raise ToolExecutionError(f"Invalid recipient address: {to!r}")
    if not subject.strip():
        raise ToolExecutionError("Subject must not be empty")
    if not body.strip():
        raise ToolExecutionError("Body must not be empty")

    await deliver(to, subject, body)

    return {
        "success": True,
        "message": f'Email sent to {to} with subject "{subject}". (Simulation)',
    }

"""Local code execution tool.

Runs bash, Python or Node.js snippets in a subprocess on the gateway host.
It is disabled by default (``tools.code_executor``); enable it only where
the host is itself a sandbox.
"""

import asyncio
import logging
import sys
from typing import Any, Literal

from chatgate.errors import ToolExecutionError
from chatgate.tools.registry import tool

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 10_000


def _command(code: str, language: str) -> list[str]:
    if language == "python":
        return [sys.executable, "-c", code]
    if language in ("javascript", "node"):
        return ["node", "-e", code]
    return ["bash", "-c", code]


def _truncate(output: str) -> str:
    if len(output) > MAX_OUTPUT_CHARS:
        omitted = len(output) - MAX_OUTPUT_CHARS
        return output[:MAX_OUTPUT_CHARS] + f"\n... (truncated, {omitted} chars omitted)"
    return output


async def _reap(process: asyncio.subprocess.Process) -> None:
    """Kill a still-running child and wait for it to exit."""
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            pass
        logger.info(f"Killed code_executor subprocess {process.pid}")
    await asyncio.shield(process.wait())


@tool(description="Execute code in bash, python or javascript/node and return its output")
async def code_executor(
    code: str,
    language: Literal["bash", "python", "javascript", "node"] = "bash",
    timeout: int = 30,
) -> dict[str, Any]:
    """Run a code snippet.

    Args:
        code: The code to execute
        language: The programming language of the code. Defaults to bash.
        timeout: Maximum execution time in seconds (default: 30, max: 120)
    """
    timeout = min(max(1, timeout), 120)

    try:
        process = await asyncio.create_subprocess_exec(
            *_command(code, language),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        raise ToolExecutionError(f"Interpreter for {language} is not available") from e

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except TimeoutError:
        await _reap(process)
        raise ToolExecutionError(f"Execution timed out after {timeout} seconds") from None
    except BaseException:
        # Cancelled by the agent's tool timeout or a closed stream
        await _reap(process)
        raise

    logger.info(f"code_executor ran {language} snippet, exit code {process.returncode}")

    stderr_text = _truncate(stderr.decode("utf-8", errors="replace"))
    return {
        "stdout": _truncate(stdout.decode("utf-8", errors="replace")),
        "stderr": stderr_text,
        "exitCode": process.returncode,
        "success": process.returncode == 0 and not stderr_text,
    }

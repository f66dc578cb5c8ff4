"""Web page text scraping tool."""

import logging
import re

import httpx
from bs4 import BeautifulSoup

from chatgate.errors import ToolExecutionError
from chatgate.tools.registry import tool

logger = logging.getLogger(__name__)

USER_AGENT = "chatgate/0.1 (+https://github.com/chatgate)"
MAX_TEXT_CHARS = 20_000
REQUEST_TIMEOUT = 15.0


def extract_visible_text(html: str) -> str:
    """Return the whitespace-normalized visible text of an HTML document."""
    soup = BeautifulSoup(html, "html.parser")
    for element in soup(["script", "style", "noscript", "template"]):
        element.decompose()
    root = soup.body or soup
    return re.sub(r"\s+", " ", root.get_text(" ")).strip()


@tool(description="Scrape all visible text content from a web page")
async def scrape(url: str) -> str:
    """Fetch a page and return its visible text, truncated to 20K characters.

    Args:
        url: The URL of the web page to scrape
    """
    if not url.startswith(("http://", "https://")):
        raise ToolExecutionError("Only http(s) URLs can be scraped")

    try:
        async with httpx.AsyncClient(
            timeout=REQUEST_TIMEOUT,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.info(f"scrape of {url} failed: {e}")
        raise ToolExecutionError(f"Failed to scrape page: {e!s}") from e

    text = extract_visible_text(response.text)
    if len(text) > MAX_TEXT_CHARS:
        text = text[:MAX_TEXT_CHARS] + f" ... (truncated, {len(text) - MAX_TEXT_CHARS} chars omitted)"
    return text

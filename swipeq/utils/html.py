"""HTML-to-text conversion for email bodies.

Vendor receipts are usually multipart with an HTML alternative, and some
are HTML-only. The extraction rules work on plain text, so HTML parts are
reduced to their visible text before flattening.
"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup


def html_to_text(html: str) -> str:
    """Convert an HTML email body to plain text.

    Args:
        html: Raw HTML string from an email part.

    Returns:
        Visible text with one line per block element, blank runs collapsed.
    """
    if not html:
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for tag in soup(["script", "style", "head"]):
        tag.decompose()

    text = soup.get_text(separator="\n")

    lines = [line.strip() for line in text.splitlines()]
    text = "\n".join(lines)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def looks_like_html(text: str) -> bool:
    """Cheap sniff for part data that was sent as text/plain but is really markup."""
    return bool(re.search(r"<(html|body|table|div|p|br)\b", text[:2000], re.IGNORECASE))

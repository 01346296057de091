from __future__ import annotations

import html
import re
from typing import Any, List


def clean_text(text: str | None) -> str:
    """Clean model-generated description text.

    - Decode HTML entities (e.g. &agrave; -> à)
    - Strip HTML tags while keeping inner text
    - Simplify Markdown links/bold/italics/headings
    - Normalize whitespace
    """

    if not text:
        return ""

    # Decode HTML entities
    text = html.unescape(text)

    # Remove HTML tags (e.g. <a href="...">text</a> -> text)
    text = re.sub(r"<[^>]+>", "", text)

    # Markdown links: [Text](url) -> Text
    text = re.sub(r"\[([^\]]+)\]\([^\)]+\)", r"\1", text)

    # Markdown bold/italics: **Text** / __Text__ / *Text* / _Text_ -> Text
    text = re.sub(r"[\*_]{2,}(.*?)[\*_]{2,}", r"\1", text)
    text = re.sub(r"(?<!\w)[\*_](\S.*?)[\*_](?!\w)", r"\1", text)

    # Markdown headings and list bullets at line starts
    text = re.sub(r"(?m)^\s*(#{1,6}|[-*])\s+", "", text)

    # Normalize whitespace and newlines
    text = text.replace("\r\n", " ").replace("\n", " ")
    text = re.sub(r"\s+", " ", text)

    return text.strip()


def normalize_query(query: Any) -> str:
    """Trim a search query and collapse inner whitespace.

    Non-string input normalizes to the empty string.
    """

    if not isinstance(query, str):
        return ""
    return " ".join(query.split())


def query_terms(query: str, min_length: int = 4) -> List[str]:
    """Lower-cased words of a query with at least ``min_length`` characters.

    Order of first appearance is kept; duplicates are left to the caller.
    """

    if not query:
        return []
    return [w for w in query.lower().split(" ") if len(w) >= min_length]

"""HTML escaping helpers.

`escape_html` is the only function allowed to touch text that ends up inside
code blocks or inline code spans. Its output never parses as markup.
"""

import re

# Matches an existing character or entity reference so it is not escaped twice.
_ENTITY_PATTERN = re.compile(r"&(?!(?:[a-zA-Z][a-zA-Z0-9]*|#[0-9]+|#[xX][0-9a-fA-F]+);)")

# "Contains at least one HTML tag" check used for pre-rendered content. Only
# real element names count, so ``#include <vector>`` or ``List<T>`` is not HTML.
_HTML_ELEMENTS = (
    "a|abbr|article|aside|b|blockquote|br|button|caption|cite|code|col|colgroup|dd|del|"
    "details|div|dl|dt|em|figcaption|figure|footer|form|h[1-6]|header|hr|i|iframe|img|"
    "input|ins|kbd|label|li|main|mark|nav|ol|p|pre|q|s|section|small|span|strong|sub|"
    "summary|sup|table|tbody|td|tfoot|th|thead|tr|u|ul"
)
_HTML_TAG_PATTERN = re.compile(
    rf"</?(?:{_HTML_ELEMENTS})(?:\s[^<>]*)?/?>", re.IGNORECASE
)


def escape_html(text: str, quote_single: bool = False) -> str:
    """Escape HTML special characters.

    Ampersand goes first so the entities produced below are not re-escaped.
    """
    text = text.replace("&", "&amp;")
    text = text.replace("<", "&lt;")
    text = text.replace(">", "&gt;")
    text = text.replace('"', "&quot;")
    if quote_single:
        text = text.replace("'", "&#x27;")
    return text


def escape_preserving_entities(text: str) -> str:
    """Escape text that may already contain entity references.

    Used for table cells, which have been escaped once upstream; a second
    pass must leave ``&amp;`` alone instead of producing ``&amp;amp;``.
    """
    text = _ENTITY_PATTERN.sub("&amp;", text)
    text = text.replace("<", "&lt;")
    text = text.replace(">", "&gt;")
    text = text.replace('"', "&quot;")
    return text


def contains_html_tag(text: str) -> bool:
    return _HTML_TAG_PATTERN.search(text) is not None


def normalize_double_escaped(text: str) -> str:
    """Collapse one level of ``&amp;`` escaping.

    Single left-to-right pass, so ``&amp;amp;`` becomes ``&amp;`` rather
    than ``&``.
    """
    return text.replace("&amp;", "&")

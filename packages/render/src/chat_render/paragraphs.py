"""Paragraph assembly for formatted text.

Splits on blank lines and wraps plain runs in ``<p>``; anything that already
starts a block-level element is passed through unwrapped.
"""

import re

_PARAGRAPH_SPLIT_PATTERN = re.compile(r"\n\s*\n")

# Block-level output of the formatters. ``<p>`` is included because the header
# pass emits one for code-like "# ..." lines.
_BLOCK_ELEMENT_PATTERN = re.compile(r"<(?:h[1-6]|table|ul|ol|blockquote|pre|hr|p)\b")

# Newlines that are not themselves followed by a blank line.
_LINE_BREAK_PATTERN = re.compile(r"\n(?![ \t]*\n)")


def wrap_paragraph(text: str) -> str:
    return f"<p>{_LINE_BREAK_PATTERN.sub('<br>', text)}</p>"


def assemble_paragraphs(text: str) -> str:
    """Wrap each blank-line separated unit in a paragraph unless it is a block.

    For a unit containing a block element, plain text before the first block
    becomes its own paragraph; the block and everything after it are emitted
    as they are. Empty units are dropped; units are rejoined with a blank line.
    """
    units: list[str] = []

    for candidate in _PARAGRAPH_SPLIT_PATTERN.split(text):
        trimmed = candidate.strip()
        if not trimmed:
            continue

        match = _BLOCK_ELEMENT_PATTERN.search(trimmed)
        if match is None:
            units.append(wrap_paragraph(trimmed))
            continue

        leading = trimmed[: match.start()].strip()
        if leading:
            units.append(wrap_paragraph(leading))
        units.append(trimmed[match.start() :])

    return "\n\n".join(units)

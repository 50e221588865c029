"""Block and inline markdown passes over protected, already-escaped text.

Every pass is a pure ``str -> str`` function. They run in the fixed order of
`FORMATTING_PASSES`; later passes see the HTML produced by earlier ones.

Inline-code placeholders (``\\x00<n>\\x00``) carry no markdown-significant
characters, so the passes leave them alone; the link pass is the one place that
has to stop explicitly at a placeholder boundary.

Because the text is escaped before these passes run, a literal ``>`` arrives
as ``&gt;`` and ``<`` as ``&lt;``. Patterns below match the escaped forms.
"""

import re
from collections.abc import Callable
from html import unescape

from chat_render.escaper import escape_preserving_entities

# -- Tables ---------------------------------------------------------------

_SEPARATOR_ROW_PATTERN = re.compile(r"^[\s|:-]+$")


def _split_cells(line: str) -> list[str]:
    """Split a table row on pipes, ignoring one outer pipe on each side."""
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def _is_table_row(line: str) -> bool:
    return "|" in line and len(_split_cells(line)) >= 2


def _is_separator_row(line: str) -> bool:
    stripped = line.strip()
    return "-" in stripped and "|" in stripped and _SEPARATOR_ROW_PATTERN.match(stripped) is not None


def _render_table(rows: list[str]) -> str:
    """Render a header row plus body rows; body rows of the wrong width are dropped."""
    header_cells = _split_cells(rows[0])
    html = ['<table class="markdown-table"><thead><tr>']
    html.extend(f"<th>{escape_preserving_entities(cell)}</th>" for cell in header_cells)
    html.append("</tr></thead><tbody>")

    for row in rows[2:]:
        cells = _split_cells(row)
        if len(cells) != len(header_cells):
            continue
        html.append("<tr>")
        html.extend(f"<td>{escape_preserving_entities(cell)}</td>" for cell in cells)
        html.append("</tr>")

    html.append("</tbody></table>")
    return "".join(html)


def _flush_table_run(run: list[str], result: list[str]) -> None:
    if len(run) >= 2 and _is_separator_row(run[1]):
        result.append(_render_table(run))
    else:
        # Not a real table: leave every line as plain text.
        result.extend(run)


def format_tables(text: str) -> str:
    """Convert pipe tables into ``<table>`` markup.

    A table is a run of two or more consecutive pipe rows whose second row is
    a dash separator (``--|--``). Runs without a separator are left untouched.
    """
    result: list[str] = []
    run: list[str] = []

    for line in text.split("\n"):
        if _is_table_row(line):
            run.append(line)
            continue
        if run:
            _flush_table_run(run, result)
            run = []
        result.append(line)

    if run:
        _flush_table_run(run, result)

    return "\n".join(result)


# -- Headers --------------------------------------------------------------

_HEADER_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.+)$", re.MULTILINE)

# Punctuation that makes a "# ..." line far more likely to be code than a title.
# Checked against the unescaped title so entity semicolons do not count.
_CODE_PUNCTUATION_PATTERN = re.compile(r"[<>{}\[\]();]")
_PREPROCESSOR_PATTERN = re.compile(r"^(?:include|define)\b")


def format_headers(text: str) -> str:
    """Convert ``#`` .. ``######`` lines into ``<h1>`` .. ``<h6>``.

    Lines whose title looks like code (brackets, braces, semicolons, or a
    leading include/define) are kept verbatim inside a paragraph instead.
    """

    def replacer(match: re.Match) -> str:
        level = len(match.group(1))
        title = match.group(2).strip()
        looks_like_code = _CODE_PUNCTUATION_PATTERN.search(unescape(title))
        if looks_like_code or _PREPROCESSOR_PATTERN.match(title):
            return f"<p>{match.group(0).strip()}</p>"
        return f"<h{level}>{title}</h{level}>"

    return _HEADER_PATTERN.sub(replacer, text)


# -- Lists ----------------------------------------------------------------

_UNORDERED_ITEM_PATTERN = re.compile(r"^[-*+][ \t]+(.+)$")
_ORDERED_ITEM_PATTERN = re.compile(r"^\d+\.[ \t]+(.+)$")


def _render_list(items: list[str], list_tag: str) -> str:
    body = "".join(f"<li>{item}</li>" for item in items)
    return f'<{list_tag} class="markdown-list">{body}</{list_tag}>'


def format_lists(text: str) -> str:
    """Group consecutive list lines into ``<ul>`` / ``<ol>`` elements.

    A change of marker style closes the current list and opens a new one, so
    alternating ``-`` and ``1.`` lines produce adjacent lists, never a merged one.
    """
    result: list[str] = []
    items: list[str] = []
    list_tag: str | None = None

    for line in text.split("\n"):
        stripped = line.strip()
        unordered = _UNORDERED_ITEM_PATTERN.match(stripped)
        ordered = None if unordered else _ORDERED_ITEM_PATTERN.match(stripped)

        if unordered or ordered:
            line_tag = "ul" if unordered else "ol"
            if list_tag != line_tag:
                if list_tag is not None:
                    result.append(_render_list(items, list_tag))
                items = []
                list_tag = line_tag
            items.append((unordered or ordered).group(1))
            continue

        if list_tag is not None:
            result.append(_render_list(items, list_tag))
            items = []
            list_tag = None
        result.append(line)

    if list_tag is not None:
        result.append(_render_list(items, list_tag))

    return "\n".join(result)


# -- Blockquotes and rules ------------------------------------------------

_BLOCKQUOTE_PATTERN = re.compile(r"^[ \t]*&gt;[ \t]+(.+)$", re.MULTILINE)
_HORIZONTAL_RULE_PATTERN = re.compile(r"^[ \t]*[-*_]{3,}[ \t]*$", re.MULTILINE)


def format_blockquotes(text: str) -> str:
    """One ``<blockquote>`` per quoted line; consecutive lines are not merged."""
    return _BLOCKQUOTE_PATTERN.sub(r"<blockquote>\1</blockquote>", text)


def format_horizontal_rules(text: str) -> str:
    return _HORIZONTAL_RULE_PATTERN.sub("<hr>", text)


# -- Inline ---------------------------------------------------------------

_BOLD_ITALIC_PATTERN = re.compile(r"\*\*\*(.+?)\*\*\*")
_BOLD_PATTERN = re.compile(r"\*\*(.+?)\*\*")
# Single asterisks must hug their content, so "2 * 3 * 4" stays arithmetic.
_ITALIC_PATTERN = re.compile(r"\*(?!\s)(.+?)(?<!\s)\*")
_STRIKETHROUGH_PATTERN = re.compile(r"~~(.+?)~~")

# Whitespace-terminated URL; also stops at generated tags, placeholders,
# and escaped quotes or angle brackets that follow it.
_URL_PATTERN = re.compile(r"https?://(?:(?!&(?:quot|lt|gt|#x27);)[^\s<\x00])+")


def format_emphasis(text: str) -> str:
    """Bold-italic, then bold, then italic, so longer markers win."""
    text = _BOLD_ITALIC_PATTERN.sub(r"<strong><em>\1</em></strong>", text)
    text = _BOLD_PATTERN.sub(r"<strong>\1</strong>", text)
    return _ITALIC_PATTERN.sub(r"<em>\1</em>", text)


def format_strikethrough(text: str) -> str:
    return _STRIKETHROUGH_PATTERN.sub(r"<del>\1</del>", text)


def format_links(text: str) -> str:
    """Turn bare http(s) URLs into anchors that open in a new context."""

    def replacer(match: re.Match) -> str:
        url = match.group(0)
        return f'<a href="{url}" target="_blank" rel="noopener noreferrer">{url}</a>'

    return _URL_PATTERN.sub(replacer, text)


FORMATTING_PASSES: tuple[Callable[[str], str], ...] = (
    format_tables,
    format_headers,
    format_lists,
    format_blockquotes,
    format_horizontal_rules,
    format_emphasis,
    format_strikethrough,
    format_links,
)


def apply_formatters(text: str) -> str:
    for formatting_pass in FORMATTING_PASSES:
        text = formatting_pass(text)
    return text

"""Convert chat message text to an HTML fragment.

Pipeline, per call:
1. Pre-rendered replies (HTML tags outside of code) are passed through after
   collapsing one level of ``&amp;`` escaping.
2. Fenced code becomes its own segment; inline code becomes placeholders and
   the remaining text is escaped.
3. Each text segment runs through the block formatters, then the paragraph
   assembler.
4. Inline code is restored.
5. If nothing was fenced, the unformatted-code heuristic gets a final say.

Every call builds its own placeholder table, so concurrent calls for
different messages never share state.
"""

from chat_render.code_heuristic import apply_code_heuristic
from chat_render.config import RenderSettings
from chat_render.config import settings as default_settings
from chat_render.escaper import contains_html_tag, normalize_double_escaped
from chat_render.formatters import apply_formatters
from chat_render.paragraphs import assemble_paragraphs
from chat_render.protector import (
    CodeSegment,
    extract_code,
    restore_code,
    strip_code_regions,
)
from localchat_shared.schemas.chat import Usage


def is_pre_rendered(content: str) -> bool:
    """True when the text outside code regions already contains HTML tags."""
    return contains_html_tag(strip_code_regions(content))


def format_content(content: str, settings: RenderSettings | None = None) -> str:
    """Render markdown-ish message text as an HTML fragment.

    Total over its input: empty strings, unbalanced fences and stray
    placeholder-like text all produce some rendering, never an exception.
    """
    settings = settings or default_settings
    if not content or not content.strip():
        return ""

    if settings.trust_html_replies and is_pre_rendered(content):
        return normalize_double_escaped(content)

    document = extract_code(content, settings.default_code_language)

    units: list[str] = []
    for segment in document.segments:
        if isinstance(segment, CodeSegment):
            units.append(segment.html)
            continue
        formatted = assemble_paragraphs(apply_formatters(segment.text))
        if formatted:
            units.append(formatted)

    html = restore_code("\n\n".join(units), document.inline_codes)

    if not document.code_blocks:
        html = apply_code_heuristic(content, html, settings)

    return html


def format_usage_footer(usage: Usage) -> str:
    return (
        '<div class="message-usage"><small>'
        f"Tokens: {usage.total_tokens} "
        f"({usage.prompt_tokens}+{usage.completion_tokens}) "
        f"• Response time: {usage.response_time_ms}ms"
        "</small></div>"
    )


def render_message_html(
    content: str,
    usage: Usage | None = None,
    settings: RenderSettings | None = None,
) -> str:
    """Formatted content followed by the usage footer, when there is one."""
    html = format_content(content, settings)
    if usage is not None:
        html = f"{html}\n{format_usage_footer(usage)}"
    return html

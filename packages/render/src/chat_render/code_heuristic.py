"""Detection and reflow of source code that arrived without fences.

Models sometimes emit a whole program as prose, with no ``` markers. When a
message produced no fenced block, its raw text is scored against two token
profiles; if either meets its threshold, the message is reflowed (line breaks
around includes, class openers, access specifiers, statement terminators and
braces) and rendered as a single code block instead.

This is a best-effort fallback. It can misfire on prose that happens to use
enough matching tokens, and it can miss genuine code; neither case is reported.
"""

import logging
import re
from dataclasses import dataclass

from chat_render.config import RenderSettings
from chat_render.protector import code_block_html, strip_code_regions

logger = logging.getLogger(__name__)

_INDENT = "    "


@dataclass(frozen=True)
class CodeProfile:
    """A family of language-indicative tokens and the count that triggers it."""

    language: str
    patterns: tuple[re.Pattern, ...]

    def score(self, text: str) -> int:
        return sum(len(pattern.findall(text)) for pattern in self.patterns)


CPP_PROFILE = CodeProfile(
    language="cpp",
    patterns=(
        re.compile(r"#\s*include\b"),
        re.compile(r"#\s*define\b"),
        re.compile(r"\b(?:class|struct)\s+[A-Za-z_]\w*"),
        re.compile(r"\b(?:public|private|protected)\s*:(?!:)"),
        re.compile(r"\b\w+::\w+"),
        re.compile(r"\breturn\b"),
        re.compile(r"\b[A-Za-z_]\w*\([^()\n]*\)\s*[;{]"),
        re.compile(r"\{"),
    ),
)

SCRIPT_PROFILE = CodeProfile(
    language="javascript",
    patterns=(
        re.compile(r"\bfunction(?:\s+[A-Za-z_$][\w$]*)?\("),
        re.compile(r"\bdef\s+[A-Za-z_]\w*\s*\("),
        re.compile(r"^\s*(?:import|from)\s+[\w.{*]", re.MULTILINE),
        re.compile(r"\bconsole\.log\s*\("),
        re.compile(r"\b(?:document|window)\.[A-Za-z_]\w*"),
        re.compile(r"\b(?:const|let|var)\s+[A-Za-z_$][\w$]*\s*="),
        re.compile(r"=>"),
    ),
)

_INCLUDE_PATTERN = re.compile(r"\s*(#\s*include\s*(?:<[^>\n]*>|\"[^\"\n]*\"))\s*")
_CLASS_OPENER_PATTERN = re.compile(r"[ \t]*\b((?:class|struct)\s+[A-Za-z_]\w*)")
_ACCESS_SPECIFIER_PATTERN = re.compile(r"\s*\b(public|private|protected)\s*:(?!:)\s*")
_ACCESS_SPECIFIER_LINE = re.compile(r"^(?:public|private|protected):$")
_DANGLING_SEMICOLON_PATTERN = re.compile(r"\}\s*\n\s*;")


def detect_code_language(content: str, settings: RenderSettings) -> str | None:
    """Return the inferred language family, or None for ordinary text."""
    cpp_score = CPP_PROFILE.score(content)
    script_score = SCRIPT_PROFILE.score(content)
    logger.debug(
        "Unfenced code scores: cpp=%d (threshold %d) script=%d (threshold %d)",
        cpp_score, settings.cpp_token_threshold,
        script_score, settings.script_token_threshold,
    )

    if cpp_score >= settings.cpp_token_threshold:
        return CPP_PROFILE.language
    if script_score >= settings.script_token_threshold:
        return SCRIPT_PROFILE.language
    return None


def _break_statements(source: str) -> str:
    """Put braces and top-level semicolons on their own line boundaries.

    Semicolons inside parentheses (``for (;;)``) and anything inside string
    literals are left where they are.
    """
    output: list[str] = []
    paren_depth = 0
    quote: str | None = None
    previous = ""

    for char in source:
        if quote is not None:
            output.append(char)
            if char == quote and previous != "\\":
                quote = None
            previous = char
            continue

        if char in "\"'`":
            quote = char
        elif char == "(":
            paren_depth += 1
        elif char == ")":
            paren_depth = max(0, paren_depth - 1)

        if paren_depth == 0 and char == "{":
            output.append("{\n")
        elif paren_depth == 0 and char == "}":
            output.append("\n}\n")
        elif paren_depth == 0 and char == ";":
            output.append(";\n")
        else:
            output.append(char)
        previous = char

    return "".join(output)


def _indent_lines(text: str) -> str:
    """Re-indent non-empty lines by brace depth; access specifiers sit one level out."""
    lines: list[str] = []
    depth = 0

    for raw_line in text.split("\n"):
        line = raw_line.strip()
        if not line:
            continue

        closes = line.count("}")
        if line.startswith("}"):
            depth = max(0, depth - 1)
            closes -= 1

        indent = depth
        if _ACCESS_SPECIFIER_LINE.match(line):
            indent = max(0, depth - 1)
        lines.append(f"{_INDENT * indent}{line}")

        depth = max(0, depth + line.count("{") - closes)

    return "\n".join(lines)


def reformat_code(source: str, language: str) -> str:
    """Reinsert the line structure that unfenced code usually lost."""
    text = source.replace("\r\n", "\n")
    if language == CPP_PROFILE.language:
        text = _INCLUDE_PATTERN.sub(r"\n\1\n", text)
        text = _CLASS_OPENER_PATTERN.sub(r"\n\1", text)
        text = _ACCESS_SPECIFIER_PATTERN.sub(r"\n\1:\n", text)
    text = _break_statements(text)
    text = _DANGLING_SEMICOLON_PATTERN.sub("};", text)
    return _indent_lines(text).strip()


def apply_code_heuristic(content: str, html: str, settings: RenderSettings) -> str:
    """Replace `html` with one code block when `content` scores as code."""
    language = detect_code_language(strip_code_regions(content), settings)
    if language is None:
        return html

    logger.debug("Rendering unfenced message as %s code", language)
    return code_block_html(reformat_code(content, language), language)

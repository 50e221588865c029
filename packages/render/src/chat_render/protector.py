"""Extraction and restoration of literal code regions.

Fenced code blocks and inline code spans are pulled out of the message before
any markdown pass runs, so nothing inside them is ever interpreted.

Fenced blocks become their own `CodeSegment` entries in a typed segment list;
the text between them stays as `TextSegment` entries that the block formatters
process independently. Inline spans live inside text, so they are replaced by
placeholder tokens of the form ``\\x00<index>\\x00`` held in a per-call
`PlaceholderTable`. NUL cannot survive in the working text (it is replaced by
U+FFFD on entry, which is also what HTML parsers do with it), so a placeholder
can never collide with user-supplied content.
"""

import re
from dataclasses import dataclass, field

from chat_render.escaper import escape_html

_PLACEHOLDER_MARK = "\x00"
_NUL_REPLACEMENT = "\ufffd"

# Opening fence with an optional language tag, body up to the next ``` or the
# end of input (an unterminated fence runs to the end instead of failing).
_FENCED_CODE_PATTERN = re.compile(r"```[ \t]*([^\s`]*)[^\n]*\n(.*?)(?:```|\Z)", re.DOTALL)

# Single-backtick span without an embedded newline.
_INLINE_CODE_PATTERN = re.compile(r"`([^`\n]+)`")

_PLACEHOLDER_PATTERN = re.compile(r"\x00(\d+)\x00")

_LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\n)+")
_TRAILING_BLANK_LINES = re.compile(r"(?:\n[ \t]*)+\Z")

_LANGUAGE_ALIASES: dict[str, str] = {
    "js": "javascript",
    "node": "javascript",
    "ts": "typescript",
    "py": "python",
    "python3": "python",
    "c++": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "h": "cpp",
    "sh": "bash",
    "shell": "bash",
    "zsh": "bash",
    "console": "bash",
    "yml": "yaml",
    "html": "markup",
    "xml": "markup",
    "svg": "markup",
    "rb": "ruby",
    "rs": "rust",
    "golang": "go",
    "cs": "csharp",
    "c#": "csharp",
    "kt": "kotlin",
    "md": "markdown",
    "ps1": "powershell",
    "text": "plaintext",
    "txt": "plaintext",
}

_KNOWN_LANGUAGES = frozenset(
    {
        "bash",
        "c",
        "cpp",
        "csharp",
        "css",
        "diff",
        "docker",
        "go",
        "java",
        "javascript",
        "json",
        "jsx",
        "kotlin",
        "lua",
        "markdown",
        "markup",
        "php",
        "plaintext",
        "powershell",
        "python",
        "ruby",
        "rust",
        "scss",
        "sql",
        "swift",
        "toml",
        "tsx",
        "typescript",
        "yaml",
    }
)


@dataclass(frozen=True)
class TextSegment:
    """Escaped literal text, possibly carrying inline-code placeholders."""

    text: str


@dataclass(frozen=True)
class CodeSegment:
    """A finished fenced code block."""

    html: str
    language: str
    source: str


Segment = TextSegment | CodeSegment


@dataclass
class PlaceholderTable:
    """Ordered mapping from placeholder index to a finished HTML fragment.

    One table per `format_content` call; it is never shared between messages.
    """

    fragments: list[str] = field(default_factory=list)

    def add(self, fragment: str) -> str:
        token = f"{_PLACEHOLDER_MARK}{len(self.fragments)}{_PLACEHOLDER_MARK}"
        self.fragments.append(fragment)
        return token

    def restore(self, text: str) -> str:
        """Swap every placeholder back for its fragment.

        A token whose index is unknown (only possible if a pass mangled it)
        is left in place rather than raising.
        """

        def replacer(match: re.Match) -> str:
            index = int(match.group(1))
            if index < len(self.fragments):
                return self.fragments[index]
            return match.group(0)

        return _PLACEHOLDER_PATTERN.sub(replacer, text)

    def __len__(self) -> int:
        return len(self.fragments)


@dataclass
class ProtectedDocument:
    """Result of the protection pass."""

    segments: list[Segment]
    inline_codes: PlaceholderTable

    @property
    def code_blocks(self) -> list[CodeSegment]:
        return [segment for segment in self.segments if isinstance(segment, CodeSegment)]


def normalize_language(tag: str | None, default: str = "plaintext") -> str:
    """Resolve a fence language tag to a known language name."""
    if not tag:
        return default
    language = tag.strip().lower()
    language = _LANGUAGE_ALIASES.get(language, language)
    if language in _KNOWN_LANGUAGES:
        return language
    return default


def trim_blank_lines(code: str) -> str:
    """Drop leading and trailing blank lines, keeping indentation intact."""
    code = _LEADING_BLANK_LINES.sub("", code)
    code = _TRAILING_BLANK_LINES.sub("", code)
    if not code.strip():
        return ""
    return code


def code_block_html(code: str, language: str) -> str:
    return f'<pre><code class="language-{language}">{escape_html(code)}</code></pre>'


def extract_code(text: str, default_language: str = "plaintext") -> ProtectedDocument:
    """Split `text` into escaped text segments and finished code blocks.

    Fenced blocks are extracted first, in input order; inline spans are then
    extracted from each text run, numbered in order of appearance.
    """
    text = text.replace(_PLACEHOLDER_MARK, _NUL_REPLACEMENT)

    inline_codes = PlaceholderTable()
    segments: list[Segment] = []
    position = 0

    for match in _FENCED_CODE_PATTERN.finditer(text):
        if match.start() > position:
            segments.append(_protect_text(text[position : match.start()], inline_codes))

        language = normalize_language(match.group(1), default_language)
        source = trim_blank_lines(match.group(2))
        segments.append(
            CodeSegment(html=code_block_html(source, language), language=language, source=source)
        )
        position = match.end()

    if position < len(text):
        segments.append(_protect_text(text[position:], inline_codes))

    return ProtectedDocument(segments=segments, inline_codes=inline_codes)


def restore_code(text: str, inline_codes: PlaceholderTable) -> str:
    return inline_codes.restore(text)


def strip_code_regions(text: str) -> str:
    """Return `text` without its fenced blocks and inline spans."""
    text = _FENCED_CODE_PATTERN.sub("", text)
    return _INLINE_CODE_PATTERN.sub("", text)


def _protect_text(text: str, inline_codes: PlaceholderTable) -> TextSegment:
    """Replace inline code with placeholders, then escape what remains."""

    def replacer(match: re.Match) -> str:
        return inline_codes.add(f"<code>{escape_html(match.group(1))}</code>")

    protected = _INLINE_CODE_PATTERN.sub(replacer, text)
    return TextSegment(text=escape_html(protected))

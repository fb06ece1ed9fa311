"""
Lightweight Markdown to HTML renderer for message text.

Handles the subset assistants actually produce: fenced code, inline code,
bold/italic, headers (h1-h3), nested lists, blockquotes, links and
paragraphs. It is a single pass over raw text, not a CommonMark
implementation, and it never raises on string input: unmatched
delimiters are left as literal text.

Code is protected in two steps: fenced blocks and inline spans are swapped
for placeholder tokens before anything else runs, and the tokens are
swapped back last. Tokens are built from private-use characters that are
removed from the input first, so text can never collide with them.

The same tokens keep the output well-formed: link targets are hidden
before emphasis runs, and every finished bold or italic span becomes one
token, so no later rule can open a tag inside it and close it outside.
"""

from __future__ import annotations

import html
import re

# Placeholder sentinels (private use area)
INLINE_OPEN = "\ue000"
BLOCK_OPEN = "\ue002"
TOKEN_CLOSE = "\ue001"
_SENTINELS = str.maketrans({INLINE_OPEN: "\ufffd", BLOCK_OPEN: "\ufffd", TOKEN_CLOSE: "\ufffd"})

# Spaces per list nesting level
INDENT_WIDTH = 2
TAB_WIDTH = 4

_FENCE_RE = re.compile(r"```([\w+#.-]*)[ \t]*\n(.*?)```", re.DOTALL)
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_BLOCK_TOKEN_RE = re.compile(rf"[ \t]*({BLOCK_OPEN}\d+{TOKEN_CLOSE})[ \t]*")
_TOKEN_RE = re.compile(rf"[{INLINE_OPEN}{BLOCK_OPEN}](\d+){TOKEN_CLOSE}")

# Applied in order; the text inside a match only sees the rules after it
_EMPHASIS_RULES = (
    ("strong", re.compile(r"\*\*([^*\n]+)\*\*")),
    ("strong", re.compile(r"__([^_\n]+)__")),
    ("em", re.compile(r"\*(?![\s*])([^*\n]+?)\*")),
    ("em", re.compile(r"(?<!\w)_(?![\s_])([^_\n]+?)_(?!\w)")),
)
_HEADER_RE = re.compile(r"^(#{1,3}) +(.+)$", re.MULTILINE)
_LIST_ITEM_RE = re.compile(r"^([ \t]*)([-*+]|\d+[.)])[ \t]+(.+)$")
_QUOTE_RE = re.compile(r"^&gt;(?: (.*))?$")
_LINK_TARGET_RE = re.compile(rf"(?<=\]\()[^)\s{INLINE_OPEN}{BLOCK_OPEN}{TOKEN_CLOSE}]+(?=\))")
# Labels never contain "<": after escaping, only generated tags carry one
_LINK_RE = re.compile(rf"\[([^\]\n<]+)\]\(({INLINE_OPEN}\d+{TOKEN_CLOSE})\)")
_BLOCK_LINE_RE = re.compile(rf"^(?:<(?:h[1-3]|ul|ol|blockquote)>|{BLOCK_OPEN}\d+{TOKEN_CLOSE}$)")

SAFE_LINK_PREFIXES = ("http://", "https://", "mailto:", "/", "#", "./", "../")


def escape_html(text: str) -> str:
    return html.escape(text, quote=True)


class ProtectedSpans:
    """Rendered fragments hidden from the markup rules behind placeholder tokens."""

    def __init__(self) -> None:
        self._spans: list[str] = []

    def protect(self, fragment: str, block: bool = False) -> str:
        token = f"{BLOCK_OPEN if block else INLINE_OPEN}{len(self._spans)}{TOKEN_CLOSE}"
        self._spans.append(fragment)
        return token

    def restore(self, text: str) -> str:
        """Swap every token back for its fragment.

        A fragment may hold tokens protected before it (emphasis around
        inline code, a link label with emphasis); those are restored too.
        """
        return _TOKEN_RE.sub(lambda m: self.restore(self._spans[int(m.group(1))]), text)


def _code_block(lang: str, code: str) -> str:
    css = "code-block"
    if lang:
        css += f" language-{escape_html(lang)}"
    code = code.strip("\n").rstrip()
    return f'<pre class="{css}"><code>{escape_html(code)}</code></pre>'


def _apply_emphasis(
    text: str, spans: ProtectedSpans, targets: dict[str, str], start: int = 0
) -> str:
    """Bold then italic, each finished span protected as a single token.

    Later rules cannot see inside an earlier span, so delimiters that cross
    (`**a _b** c_`) leave the unmatched half as literal text instead of
    producing misnested tags. Links inside a span are resolved as the span
    is built, since the link rule cannot see into it afterwards.
    """
    for index in range(start, len(_EMPHASIS_RULES)):
        tag, pattern = _EMPHASIS_RULES[index]

        def emphasis(m: re.Match[str], tag: str = tag, index: int = index) -> str:
            inner = _apply_emphasis(m.group(1), spans, targets, index + 1)
            inner = _apply_links(inner, targets)
            return spans.protect(f"<{tag}>{inner}</{tag}>")

        text = pattern.sub(emphasis, text)
    return text


def _apply_headers(text: str) -> str:
    def header(m: re.Match[str]) -> str:
        level = len(m.group(1))
        return f"<h{level}>{m.group(2).strip()}</h{level}>"

    return _HEADER_RE.sub(header, text)


def process_lists(text: str) -> str:
    """Turn list item lines into nested <ul>/<ol> structures.

    Nesting depth is the indentation divided by INDENT_WIDTH. A stack of
    open (level, tag) pairs decides what to emit: a deeper item opens a
    list inside the current <li>, a shallower one closes lists down to its
    level, and any other line closes everything. Each finished list is
    emitted as a single line so paragraph handling treats it as one block.
    """
    lines_out: list[str] = []
    stack: list[tuple[int, str]] = []
    parts: list[str] = []

    def close_deeper_than(level: int) -> None:
        while stack and stack[-1][0] > level:
            _, tag = stack.pop()
            parts.append(f"</li></{tag}>")

    def finish_list() -> None:
        close_deeper_than(-1)
        lines_out.append("".join(parts))
        parts.clear()

    for line in text.split("\n"):
        m = _LIST_ITEM_RE.match(line)
        if not m:
            if stack:
                finish_list()
            lines_out.append(line)
            continue

        indent, marker, body = m.groups()
        level = len(indent.expandtabs(TAB_WIDTH)) // INDENT_WIDTH
        close_deeper_than(level)
        if stack and stack[-1][0] == level:
            parts.append("</li>")
        else:
            tag = "ol" if marker[0].isdigit() else "ul"
            stack.append((level, tag))
            parts.append(f"<{tag}>")
        parts.append(f"<li>{body}")

    if stack:
        finish_list()
    return "\n".join(lines_out)


def _apply_blockquotes(text: str) -> str:
    """Merge runs of `> ` lines (already escaped to `&gt; `) into blockquotes."""
    lines_out: list[str] = []
    quoted: list[str] = []

    def flush() -> None:
        if quoted:
            lines_out.append(f"<blockquote>{'<br>'.join(quoted)}</blockquote>")
            quoted.clear()

    for line in text.split("\n"):
        m = _QUOTE_RE.match(line)
        if m:
            quoted.append(m.group(1) or "")
        else:
            flush()
            lines_out.append(line)
    flush()
    return "\n".join(lines_out)


def _is_safe_target(target: str) -> bool:
    lowered = target.lower()
    if lowered.startswith(SAFE_LINK_PREFIXES):
        return True
    colon = lowered.find(":")
    # No scheme at all (relative path), or the colon belongs to a path segment
    return colon == -1 or "/" in lowered[:colon]


def _protect_link_targets(text: str, spans: ProtectedSpans, targets: dict[str, str]) -> str:
    """Hide `](target)` contents so emphasis never rewrites a URL or path."""

    def target(m: re.Match[str]) -> str:
        token = spans.protect(m.group(0))
        targets[token] = m.group(0)
        return token

    return _LINK_TARGET_RE.sub(target, text)


def _apply_links(text: str, targets: dict[str, str]) -> str:
    def link(m: re.Match[str]) -> str:
        label, token = m.group(1), m.group(2)
        target = targets.get(token)
        if target is None or not _is_safe_target(html.unescape(target)):
            return m.group(0)
        return f'<a href="{target}" target="_blank" rel="noopener">{label}</a>'

    return _LINK_RE.sub(link, text)


def _build_paragraphs(text: str) -> str:
    """Group inline lines into <p> paragraphs; block lines stand alone.

    Blank-line runs end a paragraph, single newlines become <br>. Block
    elements end the current paragraph instead of being wrapped in it, so
    no <br> or empty <p> is left next to them.
    """
    blocks: list[str] = []
    paragraph: list[str] = []

    def end_paragraph() -> None:
        if paragraph:
            blocks.append(f"<p>{'<br>'.join(paragraph)}</p>")
            paragraph.clear()

    for line in text.split("\n"):
        if not line.strip():
            end_paragraph()
        elif _BLOCK_LINE_RE.match(line):
            end_paragraph()
            blocks.append(line)
        else:
            paragraph.append(line)
    end_paragraph()
    return "\n".join(blocks)


def render_markdown(text: str) -> str:
    """Render message text to an HTML fragment."""
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n").translate(_SENTINELS)

    spans = ProtectedSpans()
    text = _FENCE_RE.sub(
        lambda m: spans.protect(_code_block(m.group(1), m.group(2)), block=True), text
    )
    # Code blocks always sit on their own line
    text = _BLOCK_TOKEN_RE.sub(lambda m: f"\n{m.group(1)}\n", text)
    text = _INLINE_CODE_RE.sub(
        lambda m: spans.protect(f'<code class="inline-code">{escape_html(m.group(1))}</code>'),
        text,
    )

    text = escape_html(text)
    link_targets: dict[str, str] = {}
    text = _protect_link_targets(text, spans, link_targets)
    text = _apply_emphasis(text, spans, link_targets)
    text = _apply_headers(text)
    text = process_lists(text)
    text = _apply_blockquotes(text)
    text = _apply_links(text, link_targets)
    text = _build_paragraphs(text)
    return spans.restore(text)

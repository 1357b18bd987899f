"""
Markdown to HTML transformation.

GitHub flavoured markdown (tables, strikethrough, task lists, footnotes) via
markdown-it-py, ``$...$`` / ``$$...$$`` math emitted as KaTeX auto-render
markup, and fenced code highlighted server-side with Pygments.
"""

import html
import re
from typing import Optional

from markdown_it import MarkdownIt
from mdit_py_plugins.dollarmath import dollarmath_plugin
from mdit_py_plugins.footnote import footnote_plugin
from mdit_py_plugins.tasklists import tasklists_plugin
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import get_lexer_by_name
from pygments.util import ClassNotFound

from .errors import MarkdownParseError
from .log import logger


PAGE_BREAK_HTML = '<div class="page-break"></div>'

_PAGE_BREAK_MARKER = re.compile(r'<!--\s*page-break\s*-->|<page-break\s*/?>', re.IGNORECASE)
_FENCE = re.compile(r'^ {0,3}(`{3,}|~{3,})(.*)$')


def process_page_breaks(content: str) -> str:
    """Turn page break markers in markdown into page break divs.

    Recognised markers are `<!-- page-break -->`, `<page-break>` and an empty
    ```page-break fence. Markers inside other fenced code blocks are left alone.
    """
    lines = content.split("\n")
    output = []
    open_fence = None
    page_break_count = 0
    i = 0

    while i < len(lines):
        line = lines[i]
        fence = _FENCE.match(line)

        if open_fence is not None:
            # Closing fence: same character, at least as long, no info string
            if fence and fence.group(1)[0] == open_fence[0] and len(fence.group(1)) >= len(open_fence) \
                    and not fence.group(2).strip():
                open_fence = None
            output.append(line)
        elif fence and fence.group(2).strip().lower() == "page-break" and i + 1 < len(lines) \
                and lines[i + 1].strip() == fence.group(1):
            output.extend(["", PAGE_BREAK_HTML, ""])
            page_break_count += 1
            i += 1
        elif fence:
            open_fence = fence.group(1)
            output.append(line)
        else:
            # The div must start its own line to parse as an HTML block
            line, count = _PAGE_BREAK_MARKER.subn(f"\n{PAGE_BREAK_HTML}\n", line)
            page_break_count += count
            output.append(line)
        i += 1

    if page_break_count > 0:
        logger.debug(f"Processed {page_break_count} page break(s)")

    return "\n".join(output)


def extract_title(content: str) -> Optional[str]:
    """Extract the document title from markdown content.

    Preference order:
    1) First ATX H1 heading starting with '# '
    2) Setext H1 style (line followed by '===')
    """
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith('# '):
            heading_text = stripped[2:].strip().rstrip('#').strip()
            if heading_text:
                return heading_text

    lines = content.splitlines()
    for i in range(len(lines) - 1):
        current_line = lines[i].strip()
        underline = lines[i + 1].strip()
        if current_line and re.fullmatch(r"=+", underline):
            return current_line

    return None


class MarkdownRenderer:
    """Converts markdown to an HTML fragment."""

    def __init__(self, style: str = "default"):
        self.formatter = HtmlFormatter(style=style, nowrap=True)
        self._md = self._build_parser()

    def _highlight_fence(self, code: str, info: Optional[str]) -> str:
        lang = info.strip().split()[0] if info and info.strip() else ""
        highlighted = None
        if lang:
            try:
                lexer = get_lexer_by_name(lang, stripall=False)
                highlighted = highlight(code, lexer, self.formatter)
            except ClassNotFound:
                logger.debug(f"No lexer for code block language '{lang}', leaving it plain")
        if highlighted is None:
            highlighted = html.escape(code)
        class_attr = f' class="language-{html.escape(lang)}"' if lang else ""
        return f'<pre class="highlight"><code{class_attr}>{highlighted}</code></pre>\n'

    def _build_parser(self) -> MarkdownIt:
        md = (
            MarkdownIt("commonmark", {"html": True, "typographer": False})
            .enable("table")
            .enable("strikethrough")
        )
        md.use(tasklists_plugin)
        md.use(footnote_plugin)
        # Math tokens must be parsed before emphasis rules mangle TeX underscores
        md.use(dollarmath_plugin)

        def math_inline(tokens, idx, options, env):
            return f'<span class="math math-inline">\\({html.escape(tokens[idx].content)}\\)</span>'

        def math_block(tokens, idx, options, env):
            token = tokens[idx]
            body = html.escape(token.content.strip("\n"))
            label = f' id="{html.escape(token.info)}"' if token.type == "math_block_label" and token.info else ""
            return f'<div class="math math-display"{label}>\\[\n{body}\n\\]</div>\n'

        def fence(tokens, idx, options, env):
            token = tokens[idx]
            return self._highlight_fence(token.content, token.info)

        md.renderer.rules["math_inline"] = math_inline
        md.renderer.rules["math_inline_double"] = math_block
        md.renderer.rules["math_block"] = math_block
        md.renderer.rules["math_block_label"] = math_block
        md.renderer.rules["fence"] = fence
        return md

    def process(self, markdown_text: str) -> str:
        """Render markdown to HTML, raising MarkdownParseError on failure."""
        try:
            return self._md.render(process_page_breaks(markdown_text))
        except Exception as e:
            raise MarkdownParseError(f"Failed to convert markdown to HTML: {e}", cause=e) from e

    def stylesheet(self) -> str:
        """CSS rules for the Pygments token classes emitted by ``process``."""
        return self.formatter.get_style_defs(".highlight")

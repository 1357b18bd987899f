"""
Wraps an HTML fragment into the standalone document that gets printed.
"""

import html
from typing import Optional, Sequence

from pygments.formatters import HtmlFormatter


KATEX_VERSION = "0.16.23"
KATEX_BASE_URL = f"https://cdn.jsdelivr.net/npm/katex@{KATEX_VERSION}/dist"

MARKDOWN_CSS_URL = "https://cdn.jsdelivr.net/npm/github-markdown-css@5.5.1/github-markdown-light.css"
KATEX_CSS_URL = f"{KATEX_BASE_URL}/katex.min.css"

DEFAULT_STYLESHEETS = (MARKDOWN_CSS_URL, KATEX_CSS_URL)
DEFAULT_TITLE = "PDF Document"

HIGHLIGHT_CSS = HtmlFormatter(style="default").get_style_defs(".highlight")

PRINT_CSS = """
        body {
            box-sizing: border-box;
            min-width: 200px;
            max-width: 900px;
            margin: 0 auto;
            padding: 45px;
        }

        .markdown-body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', 'Noto Sans', Helvetica, Arial,
                         'Microsoft YaHei', 'SimSun', sans-serif, 'Apple Color Emoji', 'Segoe UI Emoji';
            font-size: 16px;
            line-height: 1.6;
            word-wrap: break-word;
        }

        .katex {
            font-size: 1.1em;
        }

        .katex-display, .math-display {
            margin: 1em 0;
            text-align: center;
            page-break-inside: avoid;
        }

        /* Print: keep headings with their content and blocks in one piece */
        h1, h2, h3, h4, h5, h6 {
            page-break-after: avoid;
            page-break-inside: avoid;
        }

        pre, blockquote, table, img, figure {
            page-break-inside: avoid;
        }

        .page-break {
            page-break-after: always;
            break-after: page;
            height: 0;
        }

        .markdown-body table {
            display: table;
            width: 100%;
            overflow: auto;
        }

        .markdown-body pre {
            padding: 16px;
            overflow: auto;
            font-size: 85%;
            line-height: 1.45;
            background-color: #f6f8fa;
            border-radius: 6px;
        }

        .markdown-body code {
            padding: 0.2em 0.4em;
            margin: 0;
            font-size: 85%;
            background-color: rgba(175,184,193,0.2);
            border-radius: 6px;
            font-family: ui-monospace, SFMono-Regular, 'SF Mono', Menlo, Consolas, 'Liberation Mono', monospace;
        }

        .markdown-body pre code {
            background-color: transparent;
            padding: 0;
            font-size: 100%;
            color: inherit;
            border-radius: 0;
        }
"""

# Typesets every .math element once KaTeX and its auto-render extension have run
MATH_SCRIPTS = f"""
    <script defer src="{KATEX_BASE_URL}/katex.min.js"></script>
    <script defer src="{KATEX_BASE_URL}/contrib/auto-render.min.js"
        onload="document.querySelectorAll('.math').forEach(function (el) {{
            renderMathInElement(el, {{
                delimiters: [
                    {{left: '\\\\[', right: '\\\\]', display: true}},
                    {{left: '\\\\(', right: '\\\\)', display: false}}
                ],
                throwOnError: false
            }});
        }});"></script>"""


def has_math(content_html: str) -> bool:
    return 'class="math ' in content_html


def assemble(
    content_html: str,
    title: Optional[str] = None,
    stylesheets: Sequence[str] = DEFAULT_STYLESHEETS,
    highlight_css: Optional[str] = None,
) -> str:
    """Build the complete HTML document for ``content_html``.

    The math scripts are only referenced when the content actually contains math.
    """
    links = "\n".join(
        f'    <link rel="stylesheet" href="{html.escape(href, quote=True)}" crossorigin="anonymous">'
        for href in stylesheets
    )
    scripts = MATH_SCRIPTS if has_math(content_html) else ""

    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title or DEFAULT_TITLE)}</title>
{links}
    <style>
{highlight_css if highlight_css is not None else HIGHLIGHT_CSS}
{PRINT_CSS}
    </style>{scripts}
</head>
<body class="markdown-body">
{content_html}
</body>
</html>
"""

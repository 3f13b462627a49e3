"""Markdown rendering for completed assistant turns."""

from __future__ import annotations

import html
import re

import markdown

MARKDOWN_EXTENSIONS = ["fenced_code", "tables", "sane_lists"]

# <pre><code class="language-python">  or a bare <pre><code>
_CODE_BLOCK = re.compile(r'<pre><code(?: class="([^"]*)")?>')


def _language(css_class: str | None) -> str:
    if not css_class:
        return "code"
    names = [c for c in css_class.split() if c != "hljs"]
    lang = " ".join(n.removeprefix("language-") for n in names).strip()
    return lang or "code"


def decorate_code_blocks(rendered: str, copy_label: str = "Copy") -> str:
    """Give every code block a header with its language label and a copy action.

    Blocks that already carry a header are left alone.
    """

    def _header(match: re.Match[str]) -> str:
        lang = html.escape(_language(match.group(1)))
        return (
            '<pre><div class="code-header">'
            f"<span>{lang}</span>"
            f'<button class="copy-btn" data-action="copy">{html.escape(copy_label)}</button>'
            f"</div>{match.group(0)[len('<pre>'):]}"
        )

    return _CODE_BLOCK.sub(_header, rendered)


def render_markdown(text: str, copy_label: str = "Copy") -> str:
    """Render assistant Markdown to HTML with decorated code blocks."""
    rendered = markdown.markdown(text or "", extensions=MARKDOWN_EXTENSIONS)
    return decorate_code_blocks(rendered, copy_label)

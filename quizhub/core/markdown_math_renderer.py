"""Markdown + LaTeX rendering for question text served to browser clients.

Architecture note:
    Only markdown is converted on the server. Math delimiters pass through
    untouched and MathJax typesets them in the browser, so stored questions
    stay plain text and are not tied to a math engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from markdown_it import MarkdownIt


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math into HTML fragments."""

    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str | None) -> str:
        """Render a markdown string into an HTML fragment."""
        sanitized = (markdown_text or "").strip()
        if not sanitized:
            return ""
        return self._markdown.render(sanitized)


renderer = MarkdownMathRenderer()
# Shared instance; MarkdownIt renders are read-only, so API worker threads can reuse it.

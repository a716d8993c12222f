"""Highlighting engine: Pygments lexing and HTML formatting plus analysis overlay.

The engine is built once per worker process. ``load()`` does the expensive
part (style resolution, formatter construction, lexer warm-up) so that each
``highlight()`` call only lexes and formats.
"""
from __future__ import annotations

import html
import time
from collections import defaultdict
from typing import Any, Dict, List

from pygments import highlight as pygments_highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import get_lexer_by_name
from pygments.styles import get_style_by_name
from pygments.util import ClassNotFound

from .analysis import ERROR, TYPE, Annotation, analyze
from .config_loader import EngineSettings
from .errors import EngineError
from .logging import get_logger

logger = get_logger("fencelight.engine")

ANNOTATION_CSS = """\
.fl-code .line { display: inline; }
.fl-code .fl-lineno { opacity: .5; padding-right: 1em; user-select: none; }
.fl-code .fl-hint { opacity: .6; font-style: italic; margin-left: 1.5em; cursor: help; }
.fl-code .fl-error { color: #f44747; border-left: 2px solid #f44747; padding-left: .5em; }
"""


def error_fragment(language: str, code: str, message: str) -> str:
    """Unhighlighted, escaped code with an error banner."""
    return (
        f'<pre class="fl-code fl-failed" data-lang="{html.escape(language)}">'
        f'<div class="fl-error">{html.escape(message)}</div>'
        f"<code>{html.escape(code)}</code></pre>"
    )


class HighlightEngine:
    def __init__(self, settings: EngineSettings):
        self.settings = settings
        self._formatter: HtmlFormatter | None = None
        self._lexers: Dict[str, Lexer] = {}
        self.loaded = False
        self.stats: Dict[str, Any] = {"highlight_count": 0, "load_seconds": None}

    def load(self):
        """Resolve the style, build the formatter and warm the lexer cache."""
        if self.loaded:
            return
        start = time.time()
        style = get_style_by_name(self.settings.style)
        self._formatter = HtmlFormatter(style=style, nowrap=True)
        for name in self.settings.preload:
            try:
                self._lexer_for(name)
            except EngineError:
                logger.warning(f"preload skipped unknown language={name}")
        self.loaded = True
        self.stats["load_seconds"] = round(time.time() - start, 3)
        logger.debug(f"engine loaded style={self.settings.style} took={self.stats['load_seconds']}s")

    def _lexer_for(self, language: str) -> Lexer:
        name = self.settings.aliases.get(language, language)
        lexer = self._lexers.get(name)
        if lexer is None:
            try:
                lexer = get_lexer_by_name(name, stripnl=False, ensurenl=True)
            except ClassNotFound:
                raise EngineError(f"no lexer for language {language!r}") from None
            self._lexers[name] = lexer
        return lexer

    def canonical_language(self, language: str) -> str:
        return self._lexer_for(language).aliases[0]

    def style_defs(self) -> str:
        self.load()
        return self._formatter.get_style_defs(".fl-code") + "\n" + ANNOTATION_CSS

    def highlight(self, language: str, code: str) -> str:
        self.load()
        lexer = self._lexer_for(language)
        canonical = lexer.aliases[0]
        annotations = analyze(canonical, code, strict=self.settings.strict)
        body = pygments_highlight(code, lexer, self._formatter)
        lines = body.split("\n")
        if lines and lines[-1] == "":
            lines.pop()
        out = self._overlay(lines, annotations)
        self.stats["highlight_count"] += 1
        return (
            f'<pre class="fl-code" data-lang="{html.escape(canonical)}">'
            f"<code>{out}</code></pre>"
        )

    def _overlay(self, lines: List[str], annotations: List[Annotation]) -> str:
        by_line: Dict[int, List[Annotation]] = defaultdict(list)
        last = max(len(lines), 1)
        for a in annotations:
            by_line[min(max(a.line, 1), last)].append(a)
        rendered = []
        for no, text in enumerate(lines or [""], start=1):
            if self.settings.line_numbers:
                text = f'<span class="fl-lineno">{no}</span>{text}'
            for a in by_line.get(no, ()):
                if a.kind == TYPE:
                    msg = html.escape(a.message)
                    text += f'<span class="fl-hint" data-col="{a.column}" title="{msg}">{msg}</span>'
            if self.settings.wrap_fragments:
                text = f'<span class="line">{text}</span>'
            rendered.append(text)
            for a in by_line.get(no, ()):
                if a.kind == ERROR:
                    rendered.append(
                        f'<div class="fl-error" data-line="{a.line}" data-col="{a.column}">'
                        f"{html.escape(a.message)}</div>"
                    )
        return "\n".join(rendered)

__all__ = ["HighlightEngine", "error_fragment", "ANNOTATION_CSS"]

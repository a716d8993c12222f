"""Document preprocessing: annotated fences -> block markers -> highlighted HTML.

Two passes, mirroring how a site generator hooks in:

1. ``rewrite_annotated_blocks`` runs before rendering and turns
   ```` ```ts twoslash ```` fences into ``{% fencelight ts %}...{% endfencelight %}``.
2. ``render_blocks`` expands each marker by calling a ``highlight(lang, code)``
   callable (normally ``WorkerHandle.highlight``) and wrapping the result in
   the page's code-block markup.
"""
from __future__ import annotations

import html
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from functools import lru_cache
from pathlib import Path
from typing import Callable, List

from .core.logging import get_logger

logger = get_logger("fencelight.preprocess")

Highlighter = Callable[[str, str], str]

BLOCK_RE = re.compile(r"\{% fencelight (?P<lang>\S+) %\}(?P<code>.*?)\{% endfencelight %\}", re.DOTALL)

LANGUAGE_LABELS = {
    "ts": "TypeScript",
    "typescript": "TypeScript",
    "js": "JavaScript",
    "javascript": "JavaScript",
    "py": "Python",
    "python": "Python",
    "json": "JSON",
}


@lru_cache(maxsize=None)
def _fence_re(marker: str) -> re.Pattern:
    return re.compile(r"```(?P<lang>\w+)[ \t]+" + re.escape(marker) + r"[ \t]*\n(?P<code>.*?)\n?```", re.DOTALL)


def rewrite_annotated_blocks(text: str, marker: str = "twoslash") -> str:
    """Replace ```<lang> <marker> fences with highlight block markers."""
    return _fence_re(marker).sub(
        lambda m: "{% fencelight " + m.group("lang") + " %}" + m.group("code") + "{% endfencelight %}", text
    )


def language_label(language: str) -> str:
    return LANGUAGE_LABELS.get(language, language.upper())


def wrap_block(language: str, output: str) -> str:
    lang = html.escape(language)
    return f"""<div class="language-{lang}">
  <div class="code-header">
    <span data-label-text="{html.escape(language_label(language))}">
      <i class="fas fa-code fa-fw small"></i>
    </span>
    <button aria-label="copy" data-title-succeed="Copied!">
      <i class="far fa-clipboard"></i>
    </button>
  </div>
  <code>
    <div class="rouge-code">
      {output}
    </div>
  </code>
</div>"""


def render_blocks(text: str, highlight: Highlighter) -> str:
    return BLOCK_RE.sub(lambda m: wrap_block(m.group("lang"), highlight(m.group("lang"), m.group("code"))), text)


def process_document(text: str, highlight: Highlighter, marker: str = "twoslash") -> str:
    return render_blocks(rewrite_annotated_blocks(text, marker), highlight)


def process_tree(
    src: Path,
    dst: Path,
    highlight: Highlighter,
    pattern: str = "*.md",
    jobs: int = 4,
    marker: str = "twoslash",
) -> List[Path]:
    """Render every ``pattern`` file under ``src`` into the same place under ``dst``.

    Pages are processed concurrently; all of them share ``highlight``, which
    is expected to serialize access to the worker itself.
    """
    src, dst = Path(src), Path(dst)
    sources = sorted(p for p in src.rglob(pattern) if p.is_file())

    def _one(path: Path) -> Path:
        out = dst / path.relative_to(src)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(process_document(path.read_text(encoding="utf-8"), highlight, marker), encoding="utf-8")
        logger.debug(f"rendered {path} -> {out}")
        return out

    written: List[Path] = []
    with ThreadPoolExecutor(max_workers=jobs) as ex:
        futures = {ex.submit(_one, p): p for p in sources}
        for f in as_completed(futures):
            written.append(f.result())
    logger.info(f"rendered {len(written)} file(s) from {src}")
    return sorted(written)

__all__ = [
    "rewrite_annotated_blocks",
    "render_blocks",
    "process_document",
    "process_tree",
    "wrap_block",
    "language_label",
]

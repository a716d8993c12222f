"""CLI entrypoint for fencelight."""
from __future__ import annotations
import argparse
import os
import pathlib
import sys

from .core.config_loader import load_settings
from .core.errors import FencelightError


def build_parser():
    p = argparse.ArgumentParser(prog="fencelight", description="Highlight annotated code fences through a persistent worker")
    p.add_argument("--config", help="Path to fencelight YAML config (default: $FENCELIGHT_CONFIG)")
    p.add_argument(
        "--log-dir",
        help="Directory to write log file (fencelight.log). If not set, only stderr is used.",
    )
    sub = p.add_subparsers(dest="command")

    render = sub.add_parser("render", help="Render a tree of documents")
    render.add_argument("src", help="Source directory")
    render.add_argument("--out", required=True, help="Output directory")
    render.add_argument("--jobs", type=int, help="Parallel page renders (default: render.jobs)")
    render.add_argument("--pattern", help="File glob (default: render.pattern)")
    render.add_argument("--marker", help="Fence annotation word (default: render.marker)")

    hl = sub.add_parser("highlight", help="Highlight one file (or stdin) and print HTML")
    hl.add_argument("--lang", required=True, help="Language tag, e.g. ts or python")
    hl.add_argument("file", nargs="?", help="Source file; stdin when omitted")

    worker = sub.add_parser("worker", help="Run the highlight worker loop on stdin/stdout")
    worker.add_argument("--framing", choices=["json", "legacy"], help="Wire framing (default: worker.framing)")

    sub.add_parser("css", help="Print the stylesheet for the configured style")
    return p


def _handle(settings, config_path):
    from .core.process_manager import WorkerHandle
    return WorkerHandle(settings.worker, config_path=config_path, fallback_on_error=settings.render.fallback_on_error)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1
    # logging reads the env once, on first logger creation
    if args.log_dir:
        log_dir_path = pathlib.Path(args.log_dir)
        log_dir_path.mkdir(parents=True, exist_ok=True)
        os.environ.setdefault("FENCELIGHT_LOG_DIR", str(log_dir_path.resolve()))
    config_path = pathlib.Path(args.config).resolve() if args.config else None

    if args.command == "worker":
        from .core import worker_entry
        wargs = []
        if args.framing:
            wargs += ["--framing", args.framing]
        if config_path:
            wargs += ["--config", str(config_path)]
        return worker_entry.main(wargs)

    try:
        settings = load_settings(config_path)
        if args.command == "css":
            from .core.engine import HighlightEngine
            sys.stdout.write(HighlightEngine(settings.engine).style_defs())
            return 0
        if args.command == "highlight":
            code = pathlib.Path(args.file).read_text(encoding="utf-8") if args.file else sys.stdin.read()
            with _handle(settings, config_path) as handle:
                sys.stdout.write(handle.highlight(args.lang, code) + "\n")
            return 0
        from .preprocess import process_tree
        with _handle(settings, config_path) as handle:
            written = process_tree(
                pathlib.Path(args.src),
                pathlib.Path(args.out),
                handle.highlight,
                pattern=args.pattern or settings.render.pattern,
                jobs=args.jobs or settings.render.jobs,
                marker=args.marker or settings.render.marker,
            )
        for path in written:
            print(path)
        return 0
    except (FencelightError, ValueError, OSError) as e:
        print(f"fencelight: error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())

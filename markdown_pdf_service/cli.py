"""
Command line entry point.

    markdown-pdf serve [--host HOST] [--port PORT]
    markdown-pdf convert notes.md other.md --output-dir pdf
    markdown-pdf check [--install]
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from colorama import Fore, Style

from .batch import BatchConverter
from .config import Config
from .converter import MarkdownPdfConverter
from .dependencies import check_dependencies, install_chromium
from .errors import ConversionError
from .log import logger, set_debug
from .options import PAGE_FORMATS, Margins, PdfOptions
from .session import RenderSessionManager


def _collect_markdown_files(paths: List[str]) -> List[Path]:
    """Expand directories into their *.md files, skipping README.md."""
    md_files: List[Path] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            md_files.extend(sorted(f for f in path.glob("*.md") if f.name != "README.md"))
        elif path.exists():
            md_files.append(path)
        else:
            logger.warning(f"Skipping missing file: {path}")
    return md_files


async def _convert(md_files: List[Path], output_dir: Path, options: PdfOptions, config: Config, force: bool) -> int:
    sessions = RenderSessionManager(config)
    converter = MarkdownPdfConverter(sessions, config)
    batch = BatchConverter(converter, options, max_concurrency=config.get_max_workers(), force=force)
    try:
        report = await batch.convert_all(md_files, output_dir)
    finally:
        await sessions.shutdown()
    return 1 if report.failed else 0


def cmd_convert(args: argparse.Namespace) -> int:
    config = Config({
        "output_dir": args.output_dir,
        "max_workers": args.max_workers,
        "navigation_timeout_ms": args.timeout,
        "debug": args.debug or None,
    })
    set_debug(config.get_debug())

    try:
        options = PdfOptions(
            page_format=args.format,
            margin=Margins.parse(args.margins) if args.margins else Margins(),
            display_header_footer=bool(args.header or args.footer),
            header_template=args.header or "",
            footer_template=args.footer or "",
        )
    except ConversionError as e:
        logger.error(e.message)
        return 2

    md_files = _collect_markdown_files(args.files)
    if not md_files:
        logger.warning("No markdown files found.")
        return 1

    return asyncio.run(_convert(md_files, config.get_output_dir(), options, config, args.force))


def cmd_serve(args: argparse.Namespace) -> int:
    from .server import run

    config = Config({"host": args.host, "port": args.port, "debug": args.debug or None})
    set_debug(config.get_debug())
    run(config)
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    if args.install and not install_chromium():
        return 1
    if check_dependencies(check_optional=True):
        print(f"\n{Fore.GREEN}✓{Style.RESET_ALL} All dependencies are ready!")
        return 0
    print(f"\n{Fore.YELLOW}⚠{Style.RESET_ALL} Some dependencies are missing. Please install them before converting.")
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="markdown-pdf",
        description="Convert markdown (tables, code, math) to PDF with headless Chromium",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None, help="Bind address (default: from config/env/127.0.0.1)")
    serve.add_argument("--port", type=int, default=None, help="Port (default: from config/env/3000)")
    serve.add_argument("--debug", action="store_true", help="Enable debug logging for detailed output")
    serve.set_defaults(func=cmd_serve)

    convert = subparsers.add_parser("convert", help="Convert markdown files or directories to PDF")
    convert.add_argument("files", nargs="+", help="Markdown files or directories containing *.md")
    convert.add_argument("--output-dir", default=None, help="Output directory (default: from config/env/pdf)")
    convert.add_argument("--format", default="A4", choices=PAGE_FORMATS, help="Page format (default: A4)")
    convert.add_argument("--margins", default=None, help="Page margins in CSS format (default: '20mm 15mm'). Use 1, 2, or 4 values. Units: in, cm, mm, pt, px")
    convert.add_argument("--header", default=None, help="Header HTML template (enables header/footer display)")
    convert.add_argument("--footer", default=None, help="Footer HTML template (enables header/footer display)")
    convert.add_argument("--max-workers", type=int, default=None, help="Maximum number of concurrent conversions (default: 4)")
    convert.add_argument("--timeout", type=int, default=None, help="Load timeout per document in milliseconds (default: 10000)")
    convert.add_argument("--force", action="store_true", help="Regenerate PDFs even when they are up to date")
    convert.add_argument("--debug", action="store_true", help="Enable debug logging for detailed output")
    convert.set_defaults(func=cmd_convert)

    check = subparsers.add_parser("check", help="Check runtime dependencies")
    check.add_argument("--install", action="store_true", help="Install Playwright Chromium first")
    check.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

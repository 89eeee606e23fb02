"""CLI entrypoints for readme2ci commands."""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import replace
from pathlib import Path

from .config import load_config
from .errors import ConfigError
from .logging import configure_logging
from .models import CATEGORY_ORDER, PipelineResult
from .pipeline import AnalyzerPipeline


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid number: {value}") from exc
    if number <= 0:
        raise argparse.ArgumentTypeError("timeout must be positive")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="readme2ci",
        description="Extract install, build and test commands from README files.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug logs, including stage timings, to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a README and report the commands it documents.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    analyze_parser.add_argument(
        "path",
        nargs="?",
        default="README.md",
        help="README file or directory containing one; '-' reads stdin (defaults to README.md).",
    )
    analyze_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the full analysis result as JSON.",
    )
    analyze_parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        help="Pipeline deadline in seconds (overrides the configuration file).",
    )
    analyze_parser.add_argument(
        "--config",
        default=None,
        help="Path to a .readme2ci.yml file (defaults to the README's directory).",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP analysis service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for readme2ci commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "analyze":
        _run_analyze(parser, args)
    elif args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_analyze(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if args.path == "-":
        content: str | bytes = sys.stdin.read()
        base_dir = Path.cwd()
    else:
        readme_path = Path(args.path).expanduser()
        if readme_path.is_dir():
            readme_path = readme_path / "README.md"
        if not readme_path.exists():
            parser.exit(1, f"README not found: {readme_path}\n")
        content = readme_path.read_bytes()
        base_dir = readme_path.parent

    try:
        config = load_config(Path(args.config) if args.config else base_dir)
        if args.timeout is not None:
            config = replace(config, timeout=args.timeout)
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")

    result = AnalyzerPipeline(config).execute(content)

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(format_summary(result))

    if not result.success:
        parser.exit(1)


def format_summary(result: PipelineResult) -> str:
    """Human-readable summary grouped by category."""
    lines: list[str] = []
    data = result.data
    if data is not None:
        if data.metadata is not None and data.metadata.name:
            lines.append(f"Project: {data.metadata.name}")
        if data.commands is not None:
            for category in CATEGORY_ORDER:
                commands = data.commands.get(category)
                if not commands:
                    continue
                lines.append(f"{category.value}:")
                for command in commands:
                    language = command.effective_language or "unknown"
                    lines.append(
                        f"  {command.text}  [{language}, confidence {command.confidence:.2f}]"
                    )
        if data.commands is None or not len(data.commands):
            lines.append("No commands found.")
        lines.append(f"Overall confidence: {data.overall_confidence:.2f}")
    for issue in result.warnings:
        lines.append(f"warning [{issue.code}] {issue.component}: {issue.message}")
    for issue in result.errors:
        lines.append(f"error [{issue.code}] {issue.component}: {issue.message}")
    return "\n".join(lines)


if __name__ == "__main__":
    main(sys.argv[1:])

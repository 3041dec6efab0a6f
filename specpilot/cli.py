"""
CLI interface for specpilot.

Runs one analysis against a project root and prints the result.
"""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import yaml

from specpilot import __version__
from specpilot.config import DEFAULT_CONFIG, get_config_template, load_config
from specpilot.engine import AnalysisEngine
from specpilot.feedback import RouteInfo, run_feedback

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="specpilot",
        description="Static feedback for layered Python web services",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
QUICK START
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
  specpilot trace . UsersController create        # Which service does it call?
  specpilot analyze . UsersService create         # Calls, raises, transactions
  specpilot exception . UsersService              # Representative exception
  specpilot sample . CreateUserRequest            # Minimal valid payload
  specpilot feedback . UsersController create --http-method POST --path /users

━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
DISCLAIMER
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
This tool reads source code with the ast module and never runs it. Findings
are heuristics over static structure; always verify them against the code.
        """,
    )

    parser.add_argument(
        "-o", "--output",
        help="Output file (default: stdout)",
    )
    parser.add_argument(
        "--format",
        choices=["json", "yaml"],
        default="json",
        help="Output format (default: json)",
    )

    # Configuration options
    config_group = parser.add_argument_group("Configuration")
    config_group.add_argument(
        "--config",
        metavar="FILE",
        help="Load config from YAML file",
    )
    config_group.add_argument(
        "--init-config",
        action="store_true",
        help="Print a starter config file and exit",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"specpilot {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    trace = subparsers.add_parser("trace", help="Find the collaborator call of an entry handler")
    _add_target(trace, "CLASS", "METHOD")
    trace.add_argument(
        "--all",
        action="store_true",
        help="List every distinct collaborator call instead of the first",
    )

    analyze = subparsers.add_parser("analyze", help="Analyze one method")
    _add_target(analyze, "CLASS", "METHOD")

    exception = subparsers.add_parser("exception", help="Infer the representative exception of a class")
    _add_target(exception, "CLASS")

    sample = subparsers.add_parser("sample", help="Synthesize a minimal payload")
    _add_target(sample, "CLASS")
    sample.add_argument(
        "--handler",
        metavar="METHOD",
        help="Treat CLASS as a handler class and sample every model parameter of METHOD",
    )
    sample.add_argument(
        "--max-depth",
        type=int,
        help="Nesting bound for nested models (default from config)",
    )

    feedback = subparsers.add_parser("feedback", help="Run every route check")
    _add_target(feedback, "CONTROLLER", "HANDLER")
    feedback.add_argument("--http-method", help="HTTP method of the route")
    feedback.add_argument("--path", help="URL path of the route")
    feedback.add_argument("--guarded", action="store_true", help="Route has an access-control guard")
    feedback.add_argument("--public", action="store_true", help="Route is explicitly public")
    feedback.add_argument(
        "--param-type",
        action="append",
        metavar="TYPE",
        help="Declared handler parameter type (repeatable; default: read from source)",
    )

    return parser


def _add_target(subparser: argparse.ArgumentParser, *names: str) -> None:
    subparser.add_argument("root", help="Project root directory")
    for name in names:
        subparser.add_argument(name.lower(), metavar=name)


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbosity."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def to_data(value: Any) -> Any:
    """Convert analysis results into plain JSON/YAML-friendly data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (list, tuple)):
        return [to_data(item) for item in value]
    if isinstance(value, dict):
        return {key: to_data(item) for key, item in value.items()}
    return value


def format_output(data: Any, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    return json.dumps(data, indent=2, default=str)


def run_command(engine: AnalysisEngine, args: argparse.Namespace) -> Any:
    """
    Run the selected subcommand.

    Returns:
        The result to print, or None when the target could not be resolved.
    """
    root = args.root
    if args.command == "trace":
        if args.all:
            return engine.trace_service_calls(root, args.class_, args.method)
        return engine.first_service_call(root, args.class_, args.method)

    if args.command == "analyze":
        result = engine.analyze_method(root, args.class_, args.method)
        if result is None:
            return None
        loop_finding = engine.detect_loop_bound_remote_calls(root, args.class_, args.method)
        return {
            **result.to_dict(),
            "complexity": engine.cyclomatic_complexity(root, args.class_, args.method),
            "loop_bound_remote_call": to_data(loop_finding),
        }

    if args.command == "exception":
        return engine.infer_exception(root, args.class_)

    if args.command == "sample":
        if args.handler:
            return engine.sample_payloads_for_handler(root, args.class_, args.handler)
        return engine.synthesize(root, args.class_, args.max_depth)

    if args.command == "feedback":
        route = RouteInfo(
            controller=args.controller,
            handler=args.handler,
            http_method=args.http_method,
            path=args.path,
            has_guards=args.guarded,
            is_public=args.public,
            param_types=tuple(args.param_type) if args.param_type else None,
        )
        return run_feedback(engine, root, route)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    # Handle --init-config: just output the template and exit
    if args.init_config:
        print(get_config_template())
        return

    if not args.command:
        parser.print_help(sys.stderr)
        sys.exit(2)

    # `class` is a keyword
    if hasattr(args, "class"):
        args.class_ = getattr(args, "class")

    # Load config if specified
    config = DEFAULT_CONFIG
    if args.config:
        config_path = Path(args.config)
        if not config_path.exists():
            print(f"Error: Config file '{config_path}' does not exist", file=sys.stderr)
            sys.exit(1)
        config = load_config(config_path)
        if args.verbose:
            print(f"Loaded config: {config_path}", file=sys.stderr)

    root = Path(args.root)
    if not root.is_dir():
        print(f"Error: Path '{root}' does not exist", file=sys.stderr)
        sys.exit(1)

    engine = AnalysisEngine(config)
    result = run_command(engine, args)
    if result is None:
        print(f"Error: could not resolve {args.command} target under {root}", file=sys.stderr)
        sys.exit(1)

    output = format_output(to_data(result), args.format)

    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        if args.verbose:
            print(f"Output written to: {args.output}", file=sys.stderr)
    else:
        print(output)

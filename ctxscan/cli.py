"""CLI entrypoints for ctxscan commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Dict, Iterable

from .errors import CtxscanError, PassRegistryError
from .logging import configure_logging
from .orchestrator import Orchestrator, ScanOutcome
from .pipeline import DEFAULT_MAX_CONCURRENCY, compute_waves


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


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the workspace root (defaults to current directory).",
    )


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")
    return number


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ctxscan",
        description="Scan a workspace of repositories and write structured context shards.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    init_parser = subparsers.add_parser(
        "init",
        help="Write a ctx.yaml describing the workspace.",
    )
    _add_verbose_option(init_parser, suppress_default=True)
    _add_path_argument(init_parser)
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing ctx.yaml.",
    )

    scan_parser = subparsers.add_parser(
        "scan",
        help="Run the analysis passes and write context shards.",
    )
    _add_verbose_option(scan_parser, suppress_default=True)
    _add_path_argument(scan_parser)
    scan_parser.add_argument(
        "--sequential",
        action="store_true",
        help="Run passes one at a time instead of wave by wave in parallel.",
    )
    scan_parser.add_argument(
        "--max-concurrency",
        type=_positive_int,
        default=DEFAULT_MAX_CONCURRENCY,
        metavar="N",
        help=f"Upper bound on passes running at once (default {DEFAULT_MAX_CONCURRENCY}).",
    )
    scan_parser.add_argument(
        "--force",
        action="store_true",
        help="Rescan even when the cached context is up to date.",
    )
    scan_parser.add_argument(
        "--with-answers",
        action="store_true",
        help="Load answers.yaml from the output directory before running.",
    )
    scan_parser.add_argument(
        "--timeout",
        type=_positive_float,
        default=None,
        metavar="SECONDS",
        help="Stop starting new waves once this many seconds have elapsed.",
    )
    scan_parser.add_argument(
        "--enable",
        action="append",
        default=[],
        metavar="KEY",
        help="Set a configuration flag to true for this run (repeatable).",
    )
    scan_parser.add_argument(
        "--disable",
        action="append",
        default=[],
        metavar="KEY",
        help="Set a configuration flag to false for this run (repeatable).",
    )
    scan_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the run outcome as JSON instead of a table.",
    )

    passes_parser = subparsers.add_parser(
        "passes",
        help="List the registered analysis passes grouped by wave.",
    )
    _add_verbose_option(passes_parser, suppress_default=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for ctxscan commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), quiet=bool(getattr(args, "json", False)))

    orchestrator = Orchestrator()

    if args.command == "init":
        try:
            config_path = orchestrator.run_init(args.path, force=bool(args.force))
        except CtxscanError as exc:
            parser.exit(1, f"{exc}\n")
        print(f"Configuration written to {_relativize(config_path)}")
    elif args.command == "scan":
        try:
            outcome = orchestrator.run_scan(
                args.path,
                parallel=not args.sequential,
                max_concurrency=args.max_concurrency,
                force=bool(args.force),
                with_answers=bool(args.with_answers),
                timeout=args.timeout,
                flag_overrides=_flag_overrides(args.enable, args.disable),
            )
        except PassRegistryError as exc:
            parser.exit(1, f"Invalid pass registration: {exc}\n")
        except CtxscanError as exc:
            parser.exit(1, f"ctxscan scan failed: {exc}\nRun with --verbose for more details.\n")
        _print_outcome(outcome, as_json=bool(args.json))
        if outcome.exit_code:
            parser.exit(outcome.exit_code)
    elif args.command == "passes":
        try:
            registry = orchestrator.describe_passes()
            waves = compute_waves(registry)
        except (PassRegistryError, ValueError, TypeError) as exc:
            parser.exit(1, f"Invalid pass registration: {exc}\n")
        for index, wave in enumerate(waves):
            print(f"Wave {index}:")
            for name in wave:
                details = []
                dependencies = registry.dependencies_of(name)
                if dependencies:
                    details.append(f"after {', '.join(dependencies)}")
                config_keys = registry.config_keys_of(name)
                if config_keys:
                    details.append(f"flags {', '.join(config_keys)}")
                suffix = f" ({'; '.join(details)})" if details else ""
                print(f"  {name}{suffix}")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _flag_overrides(enable: Iterable[str], disable: Iterable[str]) -> Dict[str, bool]:
    overrides = {key: True for key in enable}
    overrides.update({key: False for key in disable})
    return overrides


def _print_outcome(outcome: ScanOutcome, *, as_json: bool) -> None:
    if as_json:
        print(json.dumps(outcome.to_dict(), indent=2))
        return
    if outcome.fresh:
        print(f"Context already up to date in {_relativize(outcome.output_dir)}")
        return
    if outcome.report is not None:
        print(outcome.report.format_table())
    if outcome.written:
        print(f"Wrote {len(outcome.written)} files to {_relativize(outcome.output_dir)}")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])

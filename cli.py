"""Command-line front end: `ecosystem-manager [COMMAND] [OPTIONS]`."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from datetime import datetime

from pydantic import ValidationError

from config import (
    ConfigError,
    UserConfig,
    build_refs,
    get_base_path,
    get_config_path,
    get_repositories,
    load_user_config,
    write_example_config,
)
from gh_client import GitHubClient
from models import OutputFormat, RunOptions, StatusFilter, StatusReport
from render import render, select_results
from scanner import scan_all, scan_repo

COMMANDS = ("status", "repos", "config", "workspace", "init-config", "help")

FILTER_TITLES = {
    StatusFilter.URGENT_ISSUES_ONLY: "Repositories with Urgent Issues",
    StatusFilter.WITH_OPEN_PRS_ONLY: "Repositories with Open Pull Requests",
    StatusFilter.NEEDS_REVIEW_ONLY: "Repositories with PRs Needing Review",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecosystem-manager",
        description="Show git and GitHub status across the repositories of the ecosystem.",
        epilog=(
            "Compact legend: PRs N(dr) d=drafts r=needs review; "
            "Issues N(bf!) b=bugs f=features !=urgent"
        ),
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="status",
        help=f"One of: {', '.join(COMMANDS)} (default: status)",
    )
    parser.add_argument("-l", "--long", action="store_true", help="Detailed, untruncated output")
    parser.add_argument(
        "-f",
        "--fast",
        "--no-remote",
        dest="fast",
        action="store_true",
        help="Skip GitHub API calls",
    )
    parser.add_argument("--urgent-issues", action="store_true", help="Only repos with urgent issues")
    parser.add_argument("--with-prs", action="store_true", help="Only repos with open PRs")
    parser.add_argument("--needs-review", action="store_true", help="Only repos with PRs needing review")
    parser.add_argument("--sort-recent", action="store_true", help="Newest last commit first")
    parser.add_argument("--max-concurrency", type=int, default=None, metavar="N", help="Parallel repository scans (default: 8)")
    parser.add_argument("--timeout", type=float, default=None, metavar="SECONDS", help="Per-repository timeout")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("--workspace", default=None, metavar="PATH", help="Directory holding the repositories")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return parser


def build_filters(args: argparse.Namespace) -> frozenset[StatusFilter]:
    filters = set()
    if args.urgent_issues:
        filters.add(StatusFilter.URGENT_ISSUES_ONLY)
    if args.with_prs:
        filters.add(StatusFilter.WITH_OPEN_PRS_ONLY)
    if args.needs_review:
        filters.add(StatusFilter.NEEDS_REVIEW_ONLY)
    return frozenset(filters)


def build_run_options(args: argparse.Namespace, user_config: UserConfig) -> RunOptions:
    """Merge CLI flags over the user config. Raises ValidationError on bad values."""
    max_concurrency = args.max_concurrency if args.max_concurrency is not None else user_config.max_concurrency
    timeout = args.timeout if args.timeout is not None else user_config.per_unit_timeout
    return RunOptions(
        include_remote=user_config.include_remote and not args.fast,
        max_concurrency=max_concurrency,
        per_unit_timeout=timeout,
        format=OutputFormat.LONG if args.long else OutputFormat.COMPACT,
        filters=build_filters(args),
        sort_by_recency=args.sort_recent,
    )


def _title(options: RunOptions) -> str:
    # Title follows the first active filter
    for status_filter, title in FILTER_TITLES.items():
        if status_filter in options.filters:
            return title
    return "Repository Status Overview"


def cmd_status(args: argparse.Namespace, user_config: UserConfig) -> int:
    options = build_run_options(args, user_config)
    base_path = get_base_path(args.workspace, user_config)
    refs = build_refs(base_path, user_config)

    client = GitHubClient(cache_ttl=user_config.cache_ttl)

    def probe(ref, include_remote):
        return scan_repo(ref, include_remote, client)

    start = time.monotonic()
    results = scan_all(refs, options, probe=probe)
    elapsed_ms = int((time.monotonic() - start) * 1000)

    if args.json:
        report = StatusReport(
            results=select_results(results, options),
            scan_duration_ms=elapsed_ms,
            last_scanned=datetime.now().isoformat(),
        )
        print(report.model_dump_json(indent=2))
        return 0

    print(_title(options))
    print()
    print(render(results, options))
    if not options.include_remote:
        print("\n(Fast mode - GitHub API calls skipped)")
    print(f"\nCompleted in {elapsed_ms}ms")
    return 0


def cmd_repos(args: argparse.Namespace, user_config: UserConfig) -> int:
    repos = get_repositories(user_config)
    print("Repository Configuration")
    print("========================")
    print(f"\nMonitored repositories ({len(repos)}):")
    for name in repos:
        print(f"  - {name}")

    config_path = get_config_path()
    print("\nConfiguration source:")
    if not config_path.exists():
        print(f"  - No config file: {config_path}")
        print("    (using default repositories)")
    elif user_config.repositories:
        print(f"  ✓ Using repositories from: {config_path}")
    else:
        print(f"  ✓ Config file exists: {config_path}")
        print("    (repositories not configured, using defaults)")
    return 0


def cmd_config(args: argparse.Namespace, user_config: UserConfig) -> int:
    print("Ecosystem Manager Configuration")
    print("===============================")
    for key, value in user_config.model_dump().items():
        label = key.replace("_", " ").capitalize()
        print(f"{label:<25}: {value!r}")
    print(f"\nConfiguration file: {get_config_path()}")
    return 0


def cmd_workspace(args: argparse.Namespace, user_config: UserConfig) -> int:
    print(get_base_path(args.workspace, user_config))
    return 0


def cmd_init_config(args: argparse.Namespace, user_config: UserConfig) -> int:
    example_path = write_example_config()
    print(f"✓ Created example configuration: {example_path}")
    print("  Copy to config.toml and customize your settings")
    return 0


HANDLERS = {
    "status": cmd_status,
    "repos": cmd_repos,
    "config": cmd_config,
    "workspace": cmd_workspace,
    "init-config": cmd_init_config,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command == "help":
        parser.print_help()
        return 0

    handler = HANDLERS.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        print("Run 'ecosystem-manager --help' for usage information.", file=sys.stderr)
        return 1

    try:
        user_config = load_user_config()
        return handler(args, user_config)
    except (ConfigError, ValidationError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())

"""Git repo scanner — collects git and GitHub status for each repository."""

from __future__ import annotations

import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable

from config import run_git
from gh_client import GitHubClient, resolve_remote
from models import (
    MISSING,
    UNKNOWN,
    IssueSummary,
    PRSummary,
    RepoState,
    RepositoryRef,
    RepositoryResult,
    RunOptions,
)

logger = logging.getLogger(__name__)

ProbeFn = Callable[[RepositoryRef, bool], RepositoryResult]


def repo_exists(path: Path) -> bool:
    """True if path is a directory holding a .git directory."""
    return path.is_dir() and (path / ".git").is_dir()


def current_branch(path: Path) -> str:
    """Checked-out branch, or "unknown" on detached HEAD or failure."""
    if not repo_exists(path):
        return UNKNOWN
    return run_git(path, ["branch", "--show-current"]) or UNKNOWN


def pending_change_count(path: Path) -> int | str:
    """Number of entries in `git status --porcelain`, or "missing" on failure."""
    if not repo_exists(path):
        return MISSING
    porcelain = run_git(path, ["status", "--porcelain"])
    if porcelain is None:
        return MISSING
    return len([ln for ln in porcelain.splitlines() if ln.strip()])


def last_commit(path: Path) -> tuple[str, int]:
    """Return ("<shorthash> <relative time>", unix timestamp) of HEAD.

    Falls back to ("unknown", 0), e.g. for a repo without commits.
    """
    if not repo_exists(path):
        return UNKNOWN, 0
    log_line = run_git(path, ["log", "-1", "--format=%ct|%h %cr"])
    if not log_line or "|" not in log_line:
        return UNKNOWN, 0
    raw_epoch, summary = log_line.split("|", 1)
    try:
        epoch = int(raw_epoch)
    except ValueError:
        epoch = 0
    return summary.strip() or UNKNOWN, epoch


def scan_repo(
    ref: RepositoryRef,
    include_remote: bool,
    client: GitHubClient | None = None,
) -> RepositoryResult:
    """Scan a single repository for git and (optionally) GitHub status."""
    path = ref.path

    # Existence gates everything else, so missing repos spawn no processes
    if not repo_exists(path):
        logger.debug("Repository %s not found at %s", ref.name, path)
        return RepositoryResult.degraded(ref, RepoState.MISSING)

    summary, epoch = last_commit(path)
    result = RepositoryResult(
        ref=ref,
        status=RepoState.OK,
        branch=current_branch(path),
        changes=pending_change_count(path),
        last_commit_summary=summary,
        last_commit_epoch=epoch,
        issues=IssueSummary(),
        pull_requests=PRSummary(),
    )

    if not include_remote:
        return result

    identity = resolve_remote(path)
    if identity is None:
        return result

    issues, pull_requests = (client or GitHubClient()).fetch_summaries(identity)
    return result.model_copy(update={"issues": issues, "pull_requests": pull_requests})


def _outcome_to_result(ref: RepositoryRef, outcome: object) -> RepositoryResult:
    """Turn what a scan produced into a row; anything but a result is an error."""
    if isinstance(outcome, RepositoryResult):
        return outcome
    if isinstance(outcome, Exception):
        logger.warning("Scan of %s failed: %s: %s", ref.name, type(outcome).__name__, outcome)
        reason = f"{type(outcome).__name__}: {outcome}"
    else:
        logger.warning("Scan of %s returned %s instead of a result", ref.name, type(outcome).__name__)
        reason = f"scan returned {type(outcome).__name__}"
    return RepositoryResult.degraded(ref, RepoState.ERROR, error=reason)


def scan_all(
    refs: list[RepositoryRef],
    options: RunOptions,
    probe: ProbeFn | None = None,
) -> list[RepositoryResult]:
    """Scan all repos in parallel, preserving the order of refs.

    At most options.max_concurrency scans are in flight at once. A scan
    that runs longer than options.per_unit_timeout is abandoned and its
    slot handed to the next ref; it becomes an "error" row, as does a scan
    that raises or returns something other than a result. The batch always
    returns one result per ref.
    """
    if options.max_concurrency <= 0:
        raise ValueError(f"max_concurrency must be positive, got {options.max_concurrency}")

    if probe is None:
        client = GitHubClient()

        def probe(ref: RepositoryRef, include_remote: bool) -> RepositoryResult:
            return scan_repo(ref, include_remote, client)

    timeout = options.per_unit_timeout
    results: list[RepositoryResult | None] = [None] * len(refs)
    finished: queue.Queue[tuple[int, object]] = queue.Queue()
    in_flight: dict[int, float] = {}  # index -> start time
    next_index = 0

    def run_one(index: int) -> None:
        try:
            outcome: object = probe(refs[index], options.include_remote)
        except Exception as e:
            outcome = e
        finished.put((index, outcome))

    while next_index < len(refs) or in_flight:
        while next_index < len(refs) and len(in_flight) < options.max_concurrency:
            in_flight[next_index] = time.monotonic()
            # Daemon threads so an abandoned scan never holds up the batch or interpreter exit
            threading.Thread(
                target=run_one, args=(next_index,), name=f"scan-{next_index}", daemon=True
            ).start()
            next_index += 1

        deadline = min(in_flight.values()) + timeout
        try:
            index, outcome = finished.get(timeout=max(0.0, deadline - time.monotonic()))
        except queue.Empty:
            pass
        else:
            # Late results of abandoned scans are dropped
            if index in in_flight:
                del in_flight[index]
                results[index] = _outcome_to_result(refs[index], outcome)

        now = time.monotonic()
        for index, started in list(in_flight.items()):
            if now - started >= timeout:
                logger.warning("Scan of %s timed out after %ss", refs[index].name, timeout)
                results[index] = RepositoryResult.degraded(
                    refs[index], RepoState.ERROR, error=f"timed out after {timeout}s"
                )
                del in_flight[index]

    return results

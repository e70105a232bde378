"""GitHub issue/PR fetcher — uses the gh CLI to summarize open work per repo."""

from __future__ import annotations

import json
import logging
import re
import subprocess
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from config import run_git
from models import GitHubIdentity, IssueSummary, PRSummary

logger = logging.getLogger(__name__)

GITHUB_HOST = "github.com"
GH_TIMEOUT_SECONDS = 10
DEFAULT_LIST_LIMIT = 100

# Label keywords, matched as substrings of the lowercased label name
BUG_KEYWORDS = ("bug", "error", "critical", "regression")
ENHANCEMENT_KEYWORDS = ("enhancement", "feature", "improvement", "request")
URGENT_KEYWORDS = ("critical", "urgent", "high")

REVIEW_REQUIRED = "REVIEW_REQUIRED"

# Owner and repo are the first two path segments after the host
_GITHUB_URL_RE = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s]+)")


def parse_github_url(url: str) -> GitHubIdentity | None:
    """Extract (owner, repo) from a GitHub URL.

    Handles:
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - git@github.com:owner/repo.git

    Returns None for other hosts and for URLs missing either segment.
    """
    if not url or GITHUB_HOST not in url:
        return None

    match = _GITHUB_URL_RE.search(url)
    if not match:
        return None

    owner, name = match.group(1), match.group(2)
    if name.endswith(".git"):
        name = name[:-4]
    if not owner or not name:
        return None
    return GitHubIdentity(owner=owner, name=name)


def resolve_remote(repo_path: Path) -> GitHubIdentity | None:
    """Read the origin remote of a repo and parse it as a GitHub identity.

    None means "no GitHub remote", which is a normal outcome.
    """
    url = run_git(repo_path, ["remote", "get-url", "origin"])
    if not url:
        logger.debug("No origin remote for %s", repo_path)
        return None
    identity = parse_github_url(url)
    if identity is None:
        logger.debug("Origin of %s is not a GitHub URL: %s", repo_path, url)
    return identity


def _label_names(item: dict[str, Any]) -> list[str]:
    labels = item.get("labels") or []
    names = []
    for label in labels:
        if isinstance(label, dict):
            names.append(str(label.get("name") or "").lower())
    return names


def _has_label_matching(item: dict[str, Any], keywords: tuple[str, ...]) -> bool:
    return any(keyword in name for name in _label_names(item) for keyword in keywords)


def summarize_issues(issues: list[dict[str, Any]]) -> IssueSummary:
    """Count open issues by label category. An issue may land in several."""
    return IssueSummary(
        total=len(issues),
        bugs=sum(1 for issue in issues if _has_label_matching(issue, BUG_KEYWORDS)),
        enhancements=sum(1 for issue in issues if _has_label_matching(issue, ENHANCEMENT_KEYWORDS)),
        urgent=sum(1 for issue in issues if _has_label_matching(issue, URGENT_KEYWORDS)),
    )


def summarize_pull_requests(prs: list[dict[str, Any]]) -> PRSummary:
    """Count open PRs, drafts, and non-draft PRs still waiting on a review."""
    drafts = 0
    needs_review = 0
    for pr in prs:
        if pr.get("isDraft"):
            drafts += 1
        elif pr.get("reviewDecision") in (None, "", REVIEW_REQUIRED):
            needs_review += 1
    return PRSummary(total=len(prs), drafts=drafts, needs_review=needs_review)


class SummaryCache:
    """TTL cache for summaries, keyed by (owner, name, kind)."""

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds
        self._entries: dict[tuple[str, str, str], tuple[float, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: tuple[str, str, str]) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            stored_at, value = entry
            if time.monotonic() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return value

    def put(self, key: tuple[str, str, str], value: Any) -> None:
        with self._lock:
            self._entries[key] = (time.monotonic(), value)


class GitHubClient:
    """Queries open issues and PRs through the gh CLI.

    Every failure (gh missing, non-zero exit, timeout, bad JSON) degrades
    to an all-zero summary instead of raising.
    """

    def __init__(
        self,
        timeout: float = GH_TIMEOUT_SECONDS,
        limit: int = DEFAULT_LIST_LIMIT,
        cache_ttl: float | None = None,
    ):
        self.timeout = timeout
        self.limit = limit
        self.cache = SummaryCache(cache_ttl) if cache_ttl else None

    def _gh_json(self, args: list[str]) -> list[dict[str, Any]] | None:
        """Run a gh command and decode its JSON list output, or None on error."""
        cmd = ["gh", *args]
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired:
            logger.warning("gh timed out after %ss: %s", self.timeout, " ".join(args))
            return None
        except FileNotFoundError:
            logger.debug("gh CLI not found — install with: https://cli.github.com/")
            return None
        except OSError as e:
            logger.warning("Could not run gh: %s", e)
            return None

        if result.returncode != 0:
            # Rate limiting and auth problems land here too
            logger.debug("gh %s failed: %s", " ".join(args), result.stderr.strip())
            return None

        try:
            data = json.loads(result.stdout or "[]")
        except json.JSONDecodeError as e:
            logger.warning("gh returned invalid JSON: %s", e)
            return None
        if not isinstance(data, list):
            logger.warning("gh returned unexpected payload type: %s", type(data).__name__)
            return None
        return [item for item in data if isinstance(item, dict)]

    def _cached(self, identity: GitHubIdentity, kind: str, fetch):
        key = (identity.owner, identity.name, kind)
        if self.cache is not None:
            hit = self.cache.get(key)
            if hit is not None:
                return hit
        value, ok = fetch()
        if ok and self.cache is not None:
            self.cache.put(key, value)
        return value

    def fetch_open_issues(self, identity: GitHubIdentity) -> IssueSummary:
        def fetch() -> tuple[IssueSummary, bool]:
            issues = self._gh_json(
                [
                    "issue",
                    "list",
                    "--repo",
                    identity.full_name,
                    "--state",
                    "open",
                    "--limit",
                    str(self.limit),
                    "--json",
                    "number,title,labels",
                ]
            )
            if issues is None:
                return IssueSummary(), False
            return summarize_issues(issues), True

        return self._cached(identity, "issues", fetch)

    def fetch_open_pull_requests(self, identity: GitHubIdentity) -> PRSummary:
        def fetch() -> tuple[PRSummary, bool]:
            prs = self._gh_json(
                [
                    "pr",
                    "list",
                    "--repo",
                    identity.full_name,
                    "--state",
                    "open",
                    "--limit",
                    str(self.limit),
                    "--json",
                    "number,title,isDraft,reviewDecision",
                ]
            )
            if prs is None:
                return PRSummary(), False
            return summarize_pull_requests(prs), True

        return self._cached(identity, "pulls", fetch)

    def fetch_summaries(self, identity: GitHubIdentity) -> tuple[IssueSummary, PRSummary]:
        """Fetch the issue and PR summaries concurrently."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="gh") as executor:
            issues_future = executor.submit(self.fetch_open_issues, identity)
            prs_future = executor.submit(self.fetch_open_pull_requests, identity)
            return issues_future.result(), prs_future.result()

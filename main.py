"""FastAPI app for ecosystem status — one read-only report per request."""

from __future__ import annotations

import time
from datetime import datetime

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from config import ConfigError, UserConfig, build_refs, get_base_path, load_user_config
from gh_client import GitHubClient
from models import OutputFormat, RepositoryRef, RunOptions, StatusFilter, StatusReport
from render import render, select_results
from scanner import scan_all, scan_repo

app = FastAPI(
    title="Ecosystem Status",
    description="Git and GitHub status across the ecosystem repositories",
    version="0.1.0",
)


def _user_config() -> UserConfig:
    try:
        return load_user_config()
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


def _options(
    user_config: UserConfig,
    fast: bool,
    urgent_issues: bool,
    with_prs: bool,
    needs_review: bool,
    sort_recent: bool,
    max_concurrency: int | None,
    long: bool = False,
) -> RunOptions:
    filters = set()
    if urgent_issues:
        filters.add(StatusFilter.URGENT_ISSUES_ONLY)
    if with_prs:
        filters.add(StatusFilter.WITH_OPEN_PRS_ONLY)
    if needs_review:
        filters.add(StatusFilter.NEEDS_REVIEW_ONLY)
    try:
        return RunOptions(
            include_remote=user_config.include_remote and not fast,
            max_concurrency=max_concurrency or user_config.max_concurrency,
            per_unit_timeout=user_config.per_unit_timeout,
            format=OutputFormat.LONG if long else OutputFormat.COMPACT,
            filters=frozenset(filters),
            sort_by_recency=sort_recent,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def _scan(user_config: UserConfig, options: RunOptions) -> tuple[list, int]:
    """Run one aggregation. Returns (results, duration_ms)."""
    try:
        refs = build_refs(get_base_path(user_config=user_config), user_config)
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    client = GitHubClient(cache_ttl=user_config.cache_ttl)
    start = time.monotonic()
    results = scan_all(refs, options, probe=lambda ref, remote: scan_repo(ref, remote, client))
    return results, int((time.monotonic() - start) * 1000)


# --- API Endpoints ---
# Plain `def` handlers: scanning blocks, so FastAPI runs them in its threadpool.


@app.get("/api/status", response_model=StatusReport)
def status(
    fast: bool = False,
    urgent_issues: bool = False,
    with_prs: bool = False,
    needs_review: bool = False,
    sort_recent: bool = False,
    max_concurrency: int | None = Query(default=None, gt=0),
):
    """Return the filtered status report as JSON."""
    user_config = _user_config()
    options = _options(user_config, fast, urgent_issues, with_prs, needs_review, sort_recent, max_concurrency)
    results, duration_ms = _scan(user_config, options)
    return StatusReport(
        results=select_results(results, options),
        scan_duration_ms=duration_ms,
        last_scanned=datetime.now().isoformat(),
    )


@app.get("/api/status.txt", response_class=PlainTextResponse)
def status_text(
    long: bool = False,
    fast: bool = False,
    urgent_issues: bool = False,
    with_prs: bool = False,
    needs_review: bool = False,
    sort_recent: bool = False,
    max_concurrency: int | None = Query(default=None, gt=0),
):
    """Return the rendered status table."""
    user_config = _user_config()
    options = _options(
        user_config, fast, urgent_issues, with_prs, needs_review, sort_recent, max_concurrency, long
    )
    results, _ = _scan(user_config, options)
    return render(results, options) + "\n"


@app.get("/api/repos", response_model=list[RepositoryRef])
def list_repos():
    """Return the monitored repositories and their resolved paths."""
    user_config = _user_config()
    try:
        return build_refs(get_base_path(user_config=user_config), user_config)
    except ConfigError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e


@app.get("/health")
def health():
    """Health check."""
    return {"status": "ok"}

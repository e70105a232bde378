"""Status table rendering — filters, sorting and the compact/long layouts."""

from __future__ import annotations

from collections.abc import Iterable

from models import (
    MISSING,
    IssueSummary,
    OutputFormat,
    PRSummary,
    RepoState,
    RepositoryResult,
    RunOptions,
    StatusFilter,
)

ELLIPSIS = "..."

# Compact column widths: repository, branch, changes, last commit, PRs, issues
COMPACT_WIDTHS = (26, 27, 8, 22, 8, 8)

HEADERS = ("Repository", "Branch", "Changes", "Last Commit", "PRs", "Issues")
SEPARATORS = ("----------", "------", "-------", "-----------", "---", "------")


def truncate(text: str, width: int) -> str:
    """Cut text to width characters, ending in "..." when shortened."""
    if len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return text[:width]
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


def _matches(result: RepositoryResult, status_filter: StatusFilter) -> bool:
    if status_filter is StatusFilter.URGENT_ISSUES_ONLY:
        return result.issues.urgent > 0
    if status_filter is StatusFilter.WITH_OPEN_PRS_ONLY:
        return result.pull_requests.total > 0
    if status_filter is StatusFilter.NEEDS_REVIEW_ONLY:
        return result.pull_requests.needs_review > 0
    return True


def apply_filters(
    results: Iterable[RepositoryResult], filters: Iterable[StatusFilter]
) -> list[RepositoryResult]:
    """Keep results satisfying every active filter, in their original order."""
    active = list(filters)
    return [r for r in results if all(_matches(r, f) for f in active)]


def sort_by_recency(results: Iterable[RepositoryResult]) -> list[RepositoryResult]:
    """Newest commit first; unknown (epoch 0) last. Stable for ties."""
    return sorted(results, key=lambda r: r.last_commit_epoch, reverse=True)


def format_changes(changes: int | str) -> str:
    if changes == MISSING:
        return "missing"
    if changes == 0:
        return "clean"
    return str(changes)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def format_pr_info(prs: PRSummary, fmt: OutputFormat) -> str:
    if prs.total == 0:
        return "0"

    if fmt is OutputFormat.LONG:
        details = []
        if prs.drafts:
            details.append(_plural(prs.drafts, "draft"))
        if prs.needs_review:
            verb = "needs" if prs.needs_review == 1 else "need"
            details.append(f"{prs.needs_review} {verb} review")
        if details:
            return f"{prs.total} open ({', '.join(details)})"
        return f"{prs.total} open"

    markers = ""
    if prs.drafts:
        markers += "d"
    if prs.needs_review:
        markers += "r"
    return f"{prs.total}({markers})" if markers else str(prs.total)


def format_issue_info(issues: IssueSummary, fmt: OutputFormat) -> str:
    if issues.total == 0:
        return "0"

    if fmt is OutputFormat.LONG:
        details = []
        if issues.bugs:
            details.append(_plural(issues.bugs, "bug"))
        if issues.enhancements:
            details.append(_plural(issues.enhancements, "feature"))
        text = f"{issues.total} open"
        if details:
            text += f" ({', '.join(details)})"
        if issues.urgent:
            text += " 🚨"
        return text

    markers = ""
    if issues.bugs:
        markers += "b"
    if issues.enhancements:
        markers += "f"
    if issues.urgent:
        markers += "!"
    return f"{issues.total}({markers})" if markers else str(issues.total)


def _cells(result: RepositoryResult, fmt: OutputFormat) -> tuple[str, ...]:
    name = result.ref.display_name
    if result.status is not RepoState.OK:
        # Status in the branch column, the changes marker, dashes elsewhere
        return (name, result.status.value, format_changes(result.changes), "-", "-", "-")
    return (
        name,
        result.branch,
        format_changes(result.changes),
        result.last_commit_summary,
        format_pr_info(result.pull_requests, fmt),
        format_issue_info(result.issues, fmt),
    )


def _compact_line(cells: tuple[str, ...]) -> str:
    padded = [f"{truncate(cell, width):<{width}}" for cell, width in zip(cells, COMPACT_WIDTHS)]
    return " ".join(padded).rstrip()


def _long_line(cells: tuple[str, ...]) -> str:
    return "\t".join(cells)


def format_table(results: Iterable[RepositoryResult], fmt: OutputFormat) -> str:
    """Render header, separator and one row per result."""
    line = _compact_line if fmt is OutputFormat.COMPACT else _long_line
    lines = [line(HEADERS), line(SEPARATORS)]
    lines.extend(line(_cells(result, fmt)) for result in results)
    return "\n".join(lines)


def select_results(
    results: Iterable[RepositoryResult], options: RunOptions
) -> list[RepositoryResult]:
    """The rows a report shows: filtered, then sorted if requested."""
    selected = apply_filters(results, options.filters)
    if options.sort_by_recency:
        selected = sort_by_recency(selected)
    return selected


def render(results: Iterable[RepositoryResult], options: RunOptions) -> str:
    """Filter, optionally sort, and format results per options."""
    return format_table(select_results(results, options), options.format)

"""Tests for status table rendering, filtering and sorting."""

from pathlib import Path

from models import (
    IssueSummary,
    OutputFormat,
    PRSummary,
    RepoState,
    RepositoryRef,
    RepositoryResult,
    RunOptions,
    StatusFilter,
)
from render import (
    apply_filters,
    format_changes,
    format_issue_info,
    format_pr_info,
    render,
    sort_by_recency,
    truncate,
)

BASE = Path("/work")
COMPACT = OutputFormat.COMPACT
LONG = OutputFormat.LONG


def _result(name: str = "repo", **fields) -> RepositoryResult:
    defaults = {"branch": "main", "changes": 0, "last_commit_summary": "abc1234 2 days ago"}
    defaults.update(fields)
    return RepositoryResult(ref=RepositoryRef.from_name(name, BASE), **defaults)


def test_truncate() -> None:
    assert truncate("short", 10) == "short"
    assert truncate("exactly-10", 10) == "exactly-10"
    assert truncate("x" * 40, 10) == "xxxxxxx..."
    assert len(truncate("x" * 40, 10)) == 10


def test_truncate_multibyte() -> None:
    name = "卒論テンプレート" * 5
    cut = truncate(name, 10)
    assert cut == name[:7] + "..."
    assert len(cut) == 10
    cut.encode("utf-8")  # no broken characters


def test_format_changes() -> None:
    assert format_changes(0) == "clean"
    assert format_changes(5) == "5"
    assert format_changes("missing") == "missing"


def test_format_pr_info_compact() -> None:
    assert format_pr_info(PRSummary(), COMPACT) == "0"
    assert format_pr_info(PRSummary(total=2), COMPACT) == "2"
    assert format_pr_info(PRSummary(total=3, drafts=1, needs_review=2), COMPACT) == "3(dr)"
    assert format_pr_info(PRSummary(total=1, drafts=1), COMPACT) == "1(d)"


def test_format_pr_info_long() -> None:
    assert format_pr_info(PRSummary(), LONG) == "0"
    assert format_pr_info(PRSummary(total=2), LONG) == "2 open"
    assert format_pr_info(PRSummary(total=3, drafts=2, needs_review=1), LONG) == (
        "3 open (2 drafts, 1 needs review)"
    )
    assert format_pr_info(PRSummary(total=2, needs_review=2), LONG) == "2 open (2 need review)"


def test_format_issue_info_compact() -> None:
    assert format_issue_info(IssueSummary(), COMPACT) == "0"
    summary = IssueSummary(total=4, bugs=2, enhancements=1, urgent=1)
    assert format_issue_info(summary, COMPACT) == "4(bf!)"
    assert format_issue_info(IssueSummary(total=1, urgent=1), COMPACT) == "1(!)"


def test_format_issue_info_long() -> None:
    summary = IssueSummary(total=4, bugs=2, enhancements=1, urgent=1)
    assert format_issue_info(summary, LONG) == "4 open (2 bugs, 1 feature) 🚨"
    assert format_issue_info(IssueSummary(total=1, bugs=1), LONG) == "1 open (1 bug)"
    assert format_issue_info(IssueSummary(total=3), LONG) == "3 open"


def test_render_compact_clean_repo() -> None:
    output = render([_result("latex-template")], RunOptions())
    lines = output.splitlines()
    assert lines[0].startswith("Repository")
    assert lines[1].startswith("----------")
    assert len(lines) == 3
    cells = lines[2].split()
    assert cells[0] == "latex-template"
    assert cells[2] == "clean"
    assert cells[-2:] == ["0", "0"]


def test_render_compact_truncates_long_names() -> None:
    output = render([_result("a" * 40, branch="feature/" + "b" * 40)], RunOptions())
    row = output.splitlines()[2]
    assert row.startswith("a" * 23 + "... ")
    assert "feature/" + "b" * 16 + "..." in row


def test_render_compact_columns_align() -> None:
    output = render([_result("a"), _result("bbbbbbbbbbbb", changes=12)], RunOptions())
    header, _, first, second = output.splitlines()
    assert header.index("Branch") == first.index("main") == second.index("main") == 27


def test_render_long_keeps_full_text() -> None:
    name = "a" * 40
    result = _result(name, issues=IssueSummary(total=1, urgent=1))
    output = render([result], RunOptions(format=LONG))
    row = output.splitlines()[2].split("\t")
    assert row[0] == name
    assert row[-1] == "1 open 🚨"
    assert output.splitlines()[0] == "Repository\tBranch\tChanges\tLast Commit\tPRs\tIssues"


def test_render_missing_and_error_rows() -> None:
    ref = RepositoryRef.from_name("gone", BASE)
    missing = RepositoryResult.degraded(ref, RepoState.MISSING)
    failed = RepositoryResult.degraded(RepositoryRef.from_name("broken", BASE), RepoState.ERROR)

    compact = render([missing, failed], RunOptions()).splitlines()
    assert compact[2].split() == ["gone", "missing", "missing", "-", "-", "-"]
    assert compact[3].split() == ["broken", "error", "missing", "-", "-", "-"]

    long_rows = render([missing], RunOptions(format=LONG)).splitlines()
    assert long_rows[2] == "gone\tmissing\tmissing\t-\t-\t-"


def test_render_root_display_name() -> None:
    ref = RepositoryRef.from_name(".", BASE)
    output = render([RepositoryResult(ref=ref, changes=0)], RunOptions())
    assert output.splitlines()[2].startswith("latex-ecosystem ")


def test_urgent_filter_keeps_order() -> None:
    results = [_result(f"r{i}", issues=IssueSummary(total=2, urgent=u)) for i, u in enumerate([0, 1, 0, 2])]
    kept = apply_filters(results, {StatusFilter.URGENT_ISSUES_ONLY})
    assert [r.ref.name for r in kept] == ["r1", "r3"]


def test_filters_are_conjunctive() -> None:
    results = [
        _result("prs-only", pull_requests=PRSummary(total=1)),
        _result("review", pull_requests=PRSummary(total=1, needs_review=1)),
        _result("nothing"),
    ]
    both = {StatusFilter.WITH_OPEN_PRS_ONLY, StatusFilter.NEEDS_REVIEW_ONLY}
    assert [r.ref.name for r in apply_filters(results, both)] == ["review"]
    assert len(apply_filters(results, set())) == 3


def test_render_applies_filters() -> None:
    results = [_result("a"), _result("b", pull_requests=PRSummary(total=1))]
    output = render(results, RunOptions(filters=frozenset({StatusFilter.WITH_OPEN_PRS_ONLY})))
    assert len(output.splitlines()) == 3
    assert output.splitlines()[2].startswith("b ")


def test_sort_by_recency() -> None:
    results = [
        _result("unknown-1", last_commit_epoch=0),
        _result("old", last_commit_epoch=100),
        _result("new", last_commit_epoch=300),
        _result("unknown-2", last_commit_epoch=0),
        _result("mid", last_commit_epoch=200),
    ]
    ordered = [r.ref.name for r in sort_by_recency(results)]
    assert ordered == ["new", "mid", "old", "unknown-1", "unknown-2"]


def test_render_is_idempotent() -> None:
    results = [
        _result("x", last_commit_epoch=5, issues=IssueSummary(total=1, bugs=1)),
        _result("y", last_commit_epoch=9),
    ]
    options = RunOptions(sort_by_recency=True)
    assert render(results, options) == render(results, options)
    assert render(results, options).splitlines()[2].startswith("y ")

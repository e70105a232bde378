"""Pydantic models for ecosystem status reports."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

ROOT_SENTINEL = "."
DEFAULT_ROOT_DISPLAY_NAME = "latex-ecosystem"

UNKNOWN = "unknown"
MISSING = "missing"


class RepoState(str, Enum):
    OK = "ok"
    MISSING = "missing"
    ERROR = "error"


class OutputFormat(str, Enum):
    COMPACT = "compact"
    LONG = "long"


class StatusFilter(str, Enum):
    URGENT_ISSUES_ONLY = "urgent_issues_only"
    WITH_OPEN_PRS_ONLY = "with_open_prs_only"
    NEEDS_REVIEW_ONLY = "needs_review_only"


class IssueSummary(BaseModel):
    """Open issue counts; categories overlap."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    bugs: int = Field(default=0, ge=0)
    enhancements: int = Field(default=0, ge=0)
    urgent: int = Field(default=0, ge=0)


class PRSummary(BaseModel):
    """Open pull request counts."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    drafts: int = Field(default=0, ge=0)
    needs_review: int = Field(default=0, ge=0)


class GitHubIdentity(BaseModel):
    """Owner and repository name parsed from a GitHub remote URL."""

    model_config = ConfigDict(frozen=True)

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"


class RepositoryRef(BaseModel):
    """A monitored repository and where it lives on disk."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: Path
    display_name: str

    @classmethod
    def from_name(
        cls,
        name: str,
        base_path: Path,
        root_display_name: str = DEFAULT_ROOT_DISPLAY_NAME,
    ) -> RepositoryRef:
        """Resolve a repository name against the workspace base path.

        The root sentinel "." refers to the workspace itself and gets a
        dedicated display label.
        """
        if name == ROOT_SENTINEL:
            return cls(name=name, path=Path(base_path), display_name=root_display_name)
        return cls(name=name, path=Path(base_path) / name, display_name=name)


ChangeCount = Union[Annotated[int, Field(ge=0)], Literal["missing"]]


class RepositoryResult(BaseModel):
    """One row of the status report."""

    model_config = ConfigDict(frozen=True)

    ref: RepositoryRef
    status: RepoState = RepoState.OK
    branch: str = UNKNOWN
    changes: ChangeCount = MISSING
    last_commit_summary: str = UNKNOWN
    last_commit_epoch: int = 0
    issues: IssueSummary = IssueSummary()
    pull_requests: PRSummary = PRSummary()
    error: str | None = None  # reason for an "error" row, never rendered

    @classmethod
    def degraded(
        cls, ref: RepositoryRef, status: RepoState, error: str | None = None
    ) -> RepositoryResult:
        """Row with every field at its sentinel (missing repo, failed probe)."""
        return cls(ref=ref, status=status, changes=MISSING, error=error)


class RunOptions(BaseModel):
    """Options for one aggregation + rendering run."""

    model_config = ConfigDict(frozen=True)

    include_remote: bool = True
    max_concurrency: int = Field(default=8, gt=0)
    per_unit_timeout: float = Field(default=30.0, gt=0)  # seconds
    format: OutputFormat = OutputFormat.COMPACT
    filters: frozenset[StatusFilter] = frozenset()
    sort_by_recency: bool = False


class StatusReport(BaseModel):
    """Serializable envelope for a finished run."""

    results: list[RepositoryResult]
    scan_duration_ms: int
    last_scanned: str

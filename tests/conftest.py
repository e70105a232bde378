"""Shared fixtures: throwaway git repositories."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

_GIT_IDENTITY = [
    "-c",
    "user.name=Test User",
    "-c",
    "user.email=test@example.com",
    "-c",
    "commit.gpgsign=false",
]


def git(path: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *_GIT_IDENTITY, "-C", str(path), *args],
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout


@pytest.fixture
def make_repo(tmp_path: Path):
    """Factory creating a git repo under tmp_path, optionally with a commit and origin."""

    def _make(name: str = "repo", commit: bool = True, origin: str | None = None) -> Path:
        path = tmp_path / name
        path.mkdir(parents=True)
        git(path, "init", "-q", "-b", "main")
        if commit:
            (path / "README.md").write_text("hello\n", encoding="utf-8")
            git(path, "add", "README.md")
            git(path, "commit", "-q", "-m", "initial")
        if origin:
            git(path, "remote", "add", "origin", origin)
        return path

    return _make

"""Tests for the read-only HTTP surface."""

import pytest
from fastapi.testclient import TestClient

import main
from models import IssueSummary, PRSummary, RepositoryResult

client = TestClient(main.app)


@pytest.fixture(autouse=True)
def fake_scan(tmp_path, monkeypatch):
    monkeypatch.setenv("ECOSYSTEM_WORKSPACE", str(tmp_path))
    monkeypatch.setenv("ECOSYSTEM_MANAGER_CONFIG", str(tmp_path / "config.toml"))
    seen = []

    def scan_all(refs, options, probe=None):
        seen.append(options)
        return [
            RepositoryResult(
                ref=ref,
                branch="main",
                changes=i,
                issues=IssueSummary(total=1, urgent=1) if i == 1 else IssueSummary(),
                pull_requests=PRSummary(total=i),
            )
            for i, ref in enumerate(refs)
        ]

    monkeypatch.setattr(main, "scan_all", scan_all)
    return seen


def test_health() -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_status_json(fake_scan) -> None:
    response = client.get("/api/status", params={"fast": True})
    assert response.status_code == 200
    body = response.json()
    assert len(body["results"]) == len(main.build_refs(main.get_base_path()))
    assert fake_scan[0].include_remote is False


def test_status_json_filters(fake_scan) -> None:
    body = client.get("/api/status", params={"urgent_issues": True}).json()
    assert [r["ref"]["name"] for r in body["results"]] == ["texlive-ja-textlint"]


def test_status_text() -> None:
    response = client.get("/api/status.txt", params={"long": True})
    assert response.status_code == 200
    assert response.text.startswith("Repository\tBranch")


def test_status_rejects_bad_concurrency() -> None:
    assert client.get("/api/status", params={"max_concurrency": 0}).status_code == 422


def test_repos(tmp_path) -> None:
    repos = client.get("/api/repos").json()
    assert repos[0]["name"] == "."
    assert repos[0]["display_name"] == "latex-ecosystem"
    assert repos[1]["path"] == str(tmp_path.resolve() / "texlive-ja-textlint")


def test_config_error_is_500(tmp_path) -> None:
    (tmp_path / "config.toml").write_text("max_concurrency = -1\n", encoding="utf-8")
    response = client.get("/api/repos")
    assert response.status_code == 500

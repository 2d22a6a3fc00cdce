"""Unit tests for the devpulse command line."""

from __future__ import annotations

import asyncio
import datetime as dt
import json
import typing as typ

import httpx
import pytest

from devpulse.cli import SEED_MAX_PAGES, main
from devpulse.providers import GitHubRestClient, GitHubRestConfig
from devpulse.services import build_services
from tests.helpers.event_builders import commit

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def database_url(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> str:
    """Return a scratch database URL with provider tokens cleared."""
    for name in ("DEVPULSE_GITHUB_TOKEN", "DEVPULSE_GITLAB_TOKEN"):
        monkeypatch.delenv(name, raising=False)
    return f"sqlite+aiosqlite:///{tmp_path}/cli.db"


def _seed(database_url: str, *services: str) -> None:
    async def _insert() -> None:
        container = build_services(database_url)
        try:
            await container.start_storage()
            when = dt.datetime.now(dt.UTC) - dt.timedelta(hours=2)
            for index, service in enumerate(services):
                await container.pipeline.ingest(commit(service, f"sha-{index}", when))
        finally:
            await container.aclose()

    asyncio.run(_insert())


def test_summary_prints_json(database_url: str, capsys: pytest.CaptureFixture[str]) -> None:
    """The default summary output is JSON with the commit total."""
    _seed(database_url, "acme/api", "acme/api")

    exit_code = main(["--database-url", database_url, "summary"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["total_commits"] == 2
    assert payload["top_projects"][0]["service"] == "acme/api"


def test_summary_prints_markdown(
    database_url: str, capsys: pytest.CaptureFixture[str]
) -> None:
    """``--markdown`` renders the report instead of JSON."""
    _seed(database_url, "acme/web")

    exit_code = main(["--database-url", database_url, "summary", "--markdown"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert output.startswith("## Weekly Metrics")
    assert "- **acme/web**: 1 commits" in output


def test_poll_without_credentials_reports_skipped_providers(
    database_url: str, capsys: pytest.CaptureFixture[str]
) -> None:
    """A poll with no tokens scans nothing and succeeds."""
    exit_code = main(["--database-url", database_url, "poll"])

    output = capsys.readouterr().out
    assert exit_code == 0
    assert "github: not configured" in output
    assert "gitlab: not configured" in output


def test_missing_command_is_a_usage_error(database_url: str) -> None:
    """A subcommand is required."""
    with pytest.raises(SystemExit) as excinfo:
        main(["--database-url", database_url])
    assert excinfo.value.code == 2


def test_seed_backfills_history_once(
    database_url: str,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    """A backfill stores activity older than the lookback; a rerun adds nothing."""
    since = (dt.datetime.now(dt.UTC) - dt.timedelta(days=90)).date()
    committed_at = dt.datetime.now(dt.UTC) - dt.timedelta(days=60)
    commit_params: list[str] = []
    configs: list[GitHubRestConfig] = []

    def handler(request: httpx.Request) -> httpx.Response:
        match request.url.path:
            case "/user":
                return httpx.Response(200, json={"login": "ada"})
            case "/user/repos":
                return httpx.Response(200, json=[{"full_name": "acme/api"}])
            case "/repos/acme/api/commits":
                commit_params.append(request.url.params["since"])
                return httpx.Response(
                    200,
                    json=[
                        {
                            "sha": "old-1",
                            "commit": {
                                "author": {
                                    "email": "ada@example.com",
                                    "date": committed_at.isoformat(),
                                }
                            },
                        }
                    ],
                )
            case _:
                return httpx.Response(200, json=[])

    def github_client(config: GitHubRestConfig) -> GitHubRestClient:
        configs.append(config)
        transport = httpx.MockTransport(handler)
        return GitHubRestClient(config, http_client=httpx.AsyncClient(transport=transport))

    monkeypatch.setenv("DEVPULSE_GITHUB_TOKEN", "t")
    monkeypatch.delenv("DEVPULSE_GITHUB_API_URL", raising=False)
    monkeypatch.setattr("devpulse.services.GitHubRestClient", github_client)
    argv = ["--database-url", database_url, "seed", "--since", since.isoformat()]

    first = main(argv)
    first_output = capsys.readouterr().out
    second = main(argv)
    second_output = capsys.readouterr().out

    assert (first, second) == (0, 0)
    assert "github: 1 projects, 1 inserted, 0 skipped, 0 failed" in first_output
    assert "github: 1 projects, 0 inserted, 1 skipped, 0 failed" in second_output
    assert "gitlab: not configured" in first_output
    assert commit_params == [f"{since.isoformat()}T00:00:00+00:00"] * 2
    assert {config.max_pages for config in configs} == {SEED_MAX_PAGES}


def test_seed_rejects_malformed_dates(database_url: str) -> None:
    """``--since`` must be an ISO calendar date."""
    with pytest.raises(SystemExit) as excinfo:
        main(["--database-url", database_url, "seed", "--since", "last spring"])
    assert excinfo.value.code == 2

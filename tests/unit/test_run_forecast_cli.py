"""
run_forecast CLI: Integration Tests
The research client factory is replaced with one backed by a mock anthropic
client; no network.
"""

from __future__ import annotations

import json

import pytest

import run_forecast
from wealth_forecast.tools.forecast_store import FORECASTS_COLLECTION, PORTFOLIOS_COLLECTION
from wealth_forecast.tools.research_client import ResearchClient
from wealth_forecast.tools.token_tracker import TokenTracker

from tests.fixtures.conftest import MONTHLY_SIP, mock_client, request_wire


class _FakeResearchClient:
    client = None

    @classmethod
    def from_settings(cls, settings, token_tracker=None, on_event=None):
        cls.client = mock_client()
        return ResearchClient(cls.client, token_tracker=TokenTracker(), on_event=lambda k, f: None)


@pytest.fixture
def cli_env(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.delenv("FORECAST_MAX_WORKERS", raising=False)
    monkeypatch.setattr(run_forecast, "ResearchClient", _FakeResearchClient)


def _write(tmp_path, data) -> str:
    path = tmp_path / "portfolio.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestMain:

    @pytest.mark.integration
    def test_success(self, cli_env, tmp_path):
        out_dir = tmp_path / "out"
        code = run_forecast.main(_write(tmp_path, request_wire(years=3)), str(out_dir))
        assert code == 0
        assert _FakeResearchClient.client.messages.create.call_count == 2
        snapshots = list(out_dir.glob("forecast_*.json"))
        assert len(snapshots) == 1
        snapshot = json.loads(snapshots[0].read_text())
        assert len(snapshot["totalProjection"]) == 3
        assert len(list(out_dir.glob("forecast_*.xlsx"))) == 1

    @pytest.mark.integration
    def test_no_excel(self, cli_env, tmp_path):
        out_dir = tmp_path / "out"
        assert run_forecast.main(_write(tmp_path, request_wire()), str(out_dir), write_excel=False) == 0
        assert list(out_dir.glob("*.xlsx")) == []

    @pytest.mark.integration
    def test_bad_request_exit_code(self, cli_env, tmp_path, capsys):
        zero = dict(MONTHLY_SIP, contributionAmount=0, initialAmount=0)
        code = run_forecast.main(_write(tmp_path, request_wire(investments=[zero])), str(tmp_path / "out"))
        assert code == 2
        assert "non-zero amount" in capsys.readouterr().out

    @pytest.mark.integration
    def test_unreadable_file(self, cli_env, tmp_path):
        assert run_forecast.main(str(tmp_path / "missing.json"), str(tmp_path / "out")) == 2

    @pytest.mark.integration
    def test_store_saves_run_then_caches_on_portfolio(self, cli_env, tmp_path):
        store_dir = tmp_path / "store"
        code = run_forecast.main(
            _write(tmp_path, request_wire(years=3)), str(tmp_path / "out"),
            write_excel=False, store_dir=str(store_dir), user_id="alice",
        )
        assert code == 0

        run_doc = json.loads((store_dir / FORECASTS_COLLECTION / "alice.json").read_text())
        portfolio_doc = json.loads((store_dir / PORTFOLIOS_COLLECTION / "alice.json").read_text())
        assert run_doc["userId"] == "alice"
        assert portfolio_doc["lastForecastRunId"] == run_doc["runId"]
        assert portfolio_doc["lastForecastAt"] == run_doc["result"]["generatedAt"]
        assert len(portfolio_doc["lastForecast"]["totalProjection"]) == 3
        assert [inv["id"] for inv in portfolio_doc["investments"]] == ["lump", "sip"]

    @pytest.mark.integration
    def test_forecast_from_saved_portfolio(self, cli_env, tmp_path):
        store_dir = str(tmp_path / "store")
        first = run_forecast.main(
            _write(tmp_path, request_wire(years=3)), str(tmp_path / "out"),
            write_excel=False, store_dir=store_dir, user_id="alice",
        )
        assert first == 0
        second = run_forecast.main(
            None, str(tmp_path / "out2"), write_excel=False, store_dir=store_dir, user_id="alice",
        )
        assert second == 0
        assert _FakeResearchClient.client.messages.create.call_count == 2

    @pytest.mark.integration
    def test_no_saved_portfolio(self, cli_env, tmp_path, capsys):
        code = run_forecast.main(None, str(tmp_path / "out"), store_dir=str(tmp_path / "store"))
        assert code == 2
        assert "No saved portfolio" in capsys.readouterr().out

    @pytest.mark.integration
    def test_cached_forecast_printed_without_research(self, cli_env, tmp_path, capsys):
        store_dir = str(tmp_path / "store")
        run_forecast.main(
            _write(tmp_path, request_wire(years=3)), str(tmp_path / "out"),
            write_excel=False, store_dir=store_dir, user_id="alice",
        )
        _FakeResearchClient.client = None
        capsys.readouterr()

        code = run_forecast.main(store_dir=store_dir, user_id="alice", cached_only=True)
        assert code == 0
        assert _FakeResearchClient.client is None
        assert "[Store] Last forecast" in capsys.readouterr().out

    @pytest.mark.integration
    def test_cached_forecast_missing(self, cli_env, tmp_path):
        assert run_forecast.main(store_dir=str(tmp_path / "store"), cached_only=True) == 1

    @pytest.mark.integration
    def test_missing_api_key(self, monkeypatch, tmp_path, capsys):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        code = run_forecast.main(_write(tmp_path, request_wire()), str(tmp_path / "out"))
        assert code == 1
        assert "ANTHROPIC_API_KEY" in capsys.readouterr().out


class TestParseArgs:

    @pytest.mark.schema
    def test_defaults(self):
        args = run_forecast.parse_args(["portfolio.json"])
        assert args.portfolio == "portfolio.json"
        assert args.output == "output"
        assert args.workers is None
        assert args.excel is True

    @pytest.mark.schema
    def test_flags(self):
        args = run_forecast.parse_args(["p.json", "--output", "res", "--workers", "2", "--no-excel"])
        assert args.output == "res"
        assert args.workers == 2
        assert args.excel is False
        assert args.store is None
        assert args.user == "local"

    @pytest.mark.schema
    def test_store_without_portfolio(self):
        args = run_forecast.parse_args(["--store", "data", "--user", "alice", "--cached"])
        assert args.portfolio is None
        assert args.store == "data"
        assert args.user == "alice"
        assert args.cached is True

    @pytest.mark.schema
    @pytest.mark.parametrize("argv", [[], ["p.json", "--cached"]])
    def test_invalid_combinations(self, argv):
        with pytest.raises(SystemExit):
            run_forecast.parse_args(argv)

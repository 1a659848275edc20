"""Run a wealth forecast for a portfolio file and write the results.

Usage:
    python run_forecast.py portfolio.json                      # snapshot + Excel in ./output
    python run_forecast.py portfolio.json --output results     # custom output dir
    python run_forecast.py portfolio.json --workers 2          # limit concurrent research calls
    python run_forecast.py portfolio.json --no-excel           # JSON snapshot only
    python run_forecast.py portfolio.json --store data         # also persist run + portfolio
    python run_forecast.py --store data --user alice           # forecast a saved portfolio
    python run_forecast.py --store data --user alice --cached  # print the cached last forecast
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dotenv import load_dotenv
load_dotenv()

from wealth_forecast.agents.forecast_orchestrator import run_forecast_pipeline, validate_request
from wealth_forecast.config.settings import ForecastSettings
from wealth_forecast.exceptions import (
    OutputWriteError,
    PortfolioValidationError,
    WealthForecastException,
    error_category,
)
from wealth_forecast.reports.excel_writer import write_forecast_excel, write_token_usage_excel
from wealth_forecast.schemas.forecast_output import ForecastResult
from wealth_forecast.schemas.portfolio import PortfolioSettings
from wealth_forecast.tools.forecast_store import JsonFileForecastStore
from wealth_forecast.tools.research_client import ResearchClient
from wealth_forecast.tools.token_tracker import tracker as token_tracker

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_REQUEST = 2


# ---------------------------------------------------------------------------
# CLI Argument Parsing
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Wealth Forecast: researched return assumptions and 3-scenario projections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
examples:
  python run_forecast.py portfolio.json                    default output dir
  python run_forecast.py portfolio.json --output results   custom output dir
  python run_forecast.py portfolio.json --no-excel         JSON snapshot only
  python run_forecast.py portfolio.json --store data       also save run + portfolio for user "local"
  python run_forecast.py --store data --user alice          forecast alice's saved portfolio
  python run_forecast.py --store data --user alice --cached show alice's last forecast, no research
""",
    )
    parser.add_argument(
        "portfolio", nargs="?", default=None,
        help="Forecast request JSON: {years, currency, investments: [...]} "
             "(default: the user's saved portfolio in --store)",
    )
    parser.add_argument(
        "--output", default="output",
        help="Output directory (default: output)",
    )
    parser.add_argument(
        "--workers", type=int, default=None, metavar="N",
        help="Concurrent research calls (default: FORECAST_MAX_WORKERS or 4)",
    )
    parser.add_argument(
        "--no-excel", dest="excel", action="store_false", default=True,
        help="Skip the Excel workbook",
    )
    parser.add_argument(
        "--store", default=None, metavar="DIR",
        help="Forecast store directory; saves the portfolio, the run, and the cached forecast",
    )
    parser.add_argument(
        "--user", default="local", metavar="ID",
        help="User id for --store documents (default: local)",
    )
    parser.add_argument(
        "--cached", action="store_true", default=False,
        help="Print the user's cached forecast from --store without running research",
    )
    args = parser.parse_args(argv)
    if args.portfolio is None and args.store is None:
        parser.error("a portfolio file or --store is required")
    if args.cached and args.store is None:
        parser.error("--cached requires --store")
    return args


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

def _save_snapshot(result: ForecastResult, out_path: Path) -> Path:
    """Save the forecast as a camelCase JSON snapshot."""
    filepath = out_path / f"forecast_{result.generated_at[:10]}.json"
    try:
        out_path.mkdir(parents=True, exist_ok=True)
        filepath.write_text(result.model_dump_json(by_alias=True, indent=2), encoding="utf-8")
    except OSError as e:
        raise OutputWriteError(f"Cannot write {filepath.name}: {e}") from e
    return filepath


def _print_summary(result: ForecastResult) -> None:
    cur = result.currency
    print(f"\n[Forecast] {len(result.projections)} investments, "
          f"{result.horizon_years} years, {cur}")
    print(f"[Forecast] Current investment: {result.total_current_investment:,.2f} {cur}, "
          f"yearly contribution: {result.total_yearly_contribution:,.2f} {cur}")
    for a in result.assumptions:
        print(f"  {a.investment_id:<16} {a.conservative_annual_return_pct:>7.2f}% "
              f"{a.expected_annual_return_pct:>7.2f}% {a.aggressive_annual_return_pct:>7.2f}%  "
              f"({a.confidence})")
    print(f"\n  {'Year':>4}  {'Conservative':>16}  {'Expected':>16}  {'Aggressive':>16}")
    for m in result.milestones:
        marker = " *" if m.is_final else ""
        print(f"  {m.year:>4}  {m.conservative_value:>16,.2f}  "
              f"{m.expected_value:>16,.2f}  {m.aggressive_value:>16,.2f}{marker}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def _load_request_data(
    portfolio_file: Optional[str],
    store: Optional[JsonFileForecastStore],
    user_id: str,
) -> dict:
    """Read the request from the portfolio file, or from the user's saved portfolio."""
    if portfolio_file is not None:
        try:
            return json.loads(Path(portfolio_file).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PortfolioValidationError(
                f"Cannot read portfolio file {portfolio_file}: {e}"
            ) from e

    if store is None:
        raise PortfolioValidationError("A portfolio file or a forecast store is required")
    portfolio = store.get_portfolio(user_id)
    if portfolio is None:
        raise PortfolioValidationError(f"No saved portfolio for user {user_id}")
    return {
        "years": portfolio.years,
        "currency": portfolio.currency,
        "investments": portfolio.investments,
    }


def _print_cached(store: JsonFileForecastStore, user_id: str) -> int:
    if store is None:
        print("ERROR: --cached requires a forecast store")
        return EXIT_FAILURE
    portfolio = store.get_portfolio(user_id)
    cached = store.get_cached_forecast(user_id)
    if portfolio is None or cached is None:
        print(f"No cached forecast for user {user_id}")
        return EXIT_FAILURE
    print(f"[Store] Last forecast {portfolio.last_forecast_run_id} at {portfolio.last_forecast_at}")
    _print_summary(cached)
    return EXIT_OK


def main(
    portfolio_file: Optional[str] = None,
    output_dir: str = "output",
    workers: Optional[int] = None,
    write_excel: bool = True,
    store_dir: Optional[str] = None,
    user_id: str = "local",
    cached_only: bool = False,
) -> int:
    store = JsonFileForecastStore(store_dir) if store_dir else None

    if cached_only:
        try:
            return _print_cached(store, user_id)
        except WealthForecastException as e:
            print(f"ERROR: {e}")
            return EXIT_FAILURE

    try:
        settings = ForecastSettings.from_env()
    except WealthForecastException as e:
        print(f"ERROR: {e}")
        return EXIT_FAILURE

    logging.basicConfig(
        level=logging.DEBUG if settings.debug_logs else logging.INFO,
        stream=sys.stderr,
    )

    out_path = Path(output_dir)
    run_id = None
    try:
        data = _load_request_data(portfolio_file, store, user_id)
        request = validate_request(data)
        if store is not None and portfolio_file is not None:
            store.save_portfolio(user_id, PortfolioSettings(
                currency=request.currency,
                years=request.years,
                investments=[inv.to_wire() for inv in request.investments],
            ))

        client = ResearchClient.from_settings(settings, token_tracker=token_tracker)
        print(f"[Forecast] Researching {len(request.investments)} investments ...")
        result = run_forecast_pipeline(
            request,
            client,
            max_workers=workers or settings.max_concurrency,
        )

        # ===== Persist: run document, then the portfolio's cached forecast =====
        if store is not None:
            run_id = store.save_forecast_run(user_id, request, result)
            store.update_portfolio_forecast(user_id, run_id, result)

        snapshot = _save_snapshot(result, out_path)
        print(f"[Forecast] Saved: {snapshot}")
        if write_excel:
            excel_file = write_forecast_excel(result, out_path)
            print(f"[Forecast] Saved: {excel_file}")
        token_file = write_token_usage_excel(token_tracker, out_path) if write_excel else None
    except WealthForecastException as e:
        print(f"ERROR: {e}")
        return EXIT_BAD_REQUEST if error_category(e) == "bad_request" else EXIT_FAILURE

    _print_summary(result)
    if run_id:
        print(f"\n[Store] Saved run {run_id} for user {user_id} in {store_dir}/")

    # ===== Token Usage Report =====
    if token_tracker.has_records:
        summary = token_tracker.get_summary()
        print(f"\n[Tokens] {summary['num_calls']} LLM calls, "
              f"{summary['total_tokens']:,} tokens, "
              f"{summary['total_web_searches']} web searches, "
              f"${summary['estimated_cost_usd']:.4f}")
    if token_file:
        print(f"[Tokens] Saved: {token_file}")

    print(f"\nOutput directory: {out_path}/")
    return EXIT_OK


if __name__ == "__main__":
    args = parse_args()
    sys.exit(main(
        portfolio_file=args.portfolio,
        output_dir=args.output,
        workers=args.workers,
        write_excel=args.excel,
        store_dir=args.store,
        user_id=args.user,
        cached_only=args.cached,
    ))

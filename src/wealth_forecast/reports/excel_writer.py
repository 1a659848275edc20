"""
Excel export for forecast runs and research token usage.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd
from openpyxl.styles import Font, PatternFill

from wealth_forecast.exceptions import OutputWriteError
from wealth_forecast.schemas.forecast_output import ForecastResult
from wealth_forecast.tools.token_tracker import TokenTracker

_HEADER_FONT = Font(bold=True)
_HEADER_FILL = PatternFill(start_color="B8CCE4", end_color="B8CCE4", fill_type="solid")
_LIGHT_GREEN = PatternFill(start_color="90EE90", end_color="90EE90", fill_type="solid")
_YELLOW = PatternFill(start_color="FFFF00", end_color="FFFF00", fill_type="solid")
_ORANGE = PatternFill(start_color="FFA500", end_color="FFA500", fill_type="solid")

_CONFIDENCE_FILLS = {
    "high": _LIGHT_GREEN,
    "medium": _YELLOW,
    "low": _ORANGE,
}


def _style_header(ws) -> None:
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL


def _summary_rows(result: ForecastResult) -> list[dict]:
    final = result.final_total
    invested = result.invested_projection[-1].invested_value if result.invested_projection else 0.0
    return [
        {"Field": "Generated At", "Value": result.generated_at},
        {"Field": "Currency", "Value": result.currency},
        {"Field": "Horizon (years)", "Value": result.horizon_years},
        {"Field": "Investments", "Value": len(result.projections)},
        {"Field": "Total Current Investment", "Value": result.total_current_investment},
        {"Field": "Total Yearly Contribution", "Value": result.total_yearly_contribution},
        {"Field": "Total Invested (final year)", "Value": invested},
        {"Field": "Final Conservative", "Value": final.conservative_value},
        {"Field": "Final Expected", "Value": final.expected_value},
        {"Field": "Final Aggressive", "Value": final.aggressive_value},
    ]


def write_forecast_excel(result: ForecastResult, out_path: Path) -> Path:
    """
    Write a forecast workbook to out_path/forecast_<date>.xlsx.

    Sheets: Summary, Total Projection, Per Investment, Assumptions, Milestones.
    """
    filepath = Path(out_path) / f"forecast_{result.generated_at[:10]}.xlsx"

    invested_by_year = {row.year: row.invested_value for row in result.invested_projection}
    total_rows = [
        {
            "Year": row.year,
            "Invested": invested_by_year.get(row.year),
            "Conservative": row.conservative_value,
            "Expected": row.expected_value,
            "Aggressive": row.aggressive_value,
        }
        for row in result.total_projection
    ]

    per_investment_rows = []
    for p in result.projections:
        for row in p.yearly:
            per_investment_rows.append({
                "Investment ID": p.investment_id,
                "Name": p.investment_name,
                "Year": row.year,
                "Conservative": row.conservative_value,
                "Expected": row.expected_value,
                "Aggressive": row.aggressive_value,
            })

    names = {p.investment_id: p.investment_name for p in result.projections}
    assumption_rows = []
    for a in result.assumptions:
        assumption_rows.append({
            "Investment ID": a.investment_id,
            "Name": names.get(a.investment_id, ""),
            "Conservative %": a.conservative_annual_return_pct,
            "Expected %": a.expected_annual_return_pct,
            "Aggressive %": a.aggressive_annual_return_pct,
            "YTD %": a.ytd_return_pct,
            "1Y %": a.one_year_return_pct,
            "3Y CAGR %": a.three_year_cagr_pct,
            "5Y CAGR %": a.five_year_cagr_pct,
            "Inception CAGR %": a.since_inception_cagr_pct,
            "History As Of": a.history_as_of,
            "Confidence": a.confidence,
            "Rationale": a.rationale,
            "Sources": "\n".join(s.uri for s in a.sources),
        })

    milestone_rows = [
        {
            "Year": m.year,
            "Conservative": m.conservative_value,
            "Expected": m.expected_value,
            "Aggressive": m.aggressive_value,
            "Final": "YES" if m.is_final else "",
        }
        for m in result.milestones
    ]

    sheets = {
        "Summary": pd.DataFrame(_summary_rows(result)),
        "Total Projection": pd.DataFrame(total_rows),
        "Per Investment": pd.DataFrame(per_investment_rows),
        "Assumptions": pd.DataFrame(assumption_rows),
        "Milestones": pd.DataFrame(milestone_rows),
    }

    try:
        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            for sheet_name, df in sheets.items():
                df.to_excel(writer, sheet_name=sheet_name, index=False)
                _style_header(writer.sheets[sheet_name])

            ws = writer.sheets["Summary"]
            ws.column_dimensions["A"].width = 28
            ws.column_dimensions["B"].width = 32

            # Color-code confidence
            ws = writer.sheets["Assumptions"]
            if assumption_rows:
                conf_col = list(assumption_rows[0]).index("Confidence") + 1
                for row_idx in range(2, ws.max_row + 1):
                    cell = ws.cell(row=row_idx, column=conf_col)
                    fill = _CONFIDENCE_FILLS.get(cell.value)
                    if fill is not None:
                        cell.fill = fill
    except OSError as e:
        raise OutputWriteError(f"Cannot write {filepath.name}: {e}") from e

    return filepath


def write_token_usage_excel(tracker: TokenTracker, out_path: Path) -> Optional[Path]:
    """Write token usage to out_path/token_usage.xlsx if any provider calls were tracked."""
    if not tracker.has_records:
        return None

    filepath = Path(out_path) / "token_usage.xlsx"
    summary = tracker.get_summary()

    summary_rows = [
        {"Metric": "Total Input Tokens", "Value": f"{summary['total_input_tokens']:,}"},
        {"Metric": "Total Output Tokens", "Value": f"{summary['total_output_tokens']:,}"},
        {"Metric": "Total Tokens", "Value": f"{summary['total_tokens']:,}"},
        {"Metric": "Web Searches", "Value": str(summary["total_web_searches"])},
        {"Metric": "Estimated Cost ($)", "Value": f"${summary['estimated_cost_usd']:.4f}"},
        {"Metric": "Number of LLM Calls", "Value": str(summary["num_calls"])},
    ]

    investment_rows = [
        {
            "Investment ID": g["investment_id"],
            "Input Tokens": g["input_tokens"],
            "Output Tokens": g["output_tokens"],
            "Total Tokens": g["total_tokens"],
            "Web Searches": g["web_searches"],
            "Cost ($)": g["cost_usd"],
            "Calls": g["calls"],
        }
        for g in tracker.get_by_investment()
    ]
    investment_rows.append({
        "Investment ID": "TOTAL",
        "Input Tokens": summary["total_input_tokens"],
        "Output Tokens": summary["total_output_tokens"],
        "Total Tokens": summary["total_tokens"],
        "Web Searches": summary["total_web_searches"],
        "Cost ($)": summary["estimated_cost_usd"],
        "Calls": summary["num_calls"],
    })

    function_rows = [
        {
            "Function": g["function"],
            "Input Tokens": g["input_tokens"],
            "Output Tokens": g["output_tokens"],
            "Total Tokens": g["total_tokens"],
            "Cost ($)": g["cost_usd"],
            "Calls": g["calls"],
        }
        for g in tracker.get_by_function()
    ]

    try:
        with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
            for sheet_name, rows in (
                ("Summary", summary_rows),
                ("By Investment", investment_rows),
                ("By Function", function_rows),
            ):
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, index=False)
                _style_header(writer.sheets[sheet_name])
            ws = writer.sheets["Summary"]
            ws.column_dimensions["A"].width = 25
            ws.column_dimensions["B"].width = 25
    except OSError as e:
        raise OutputWriteError(f"Cannot write {filepath.name}: {e}") from e

    return filepath

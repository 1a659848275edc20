"""
Assumption Normalizer: Unit Tests
Rate clamping, history anchor, expected-rate blending, scenario ordering,
and source sanitization.
"""

from __future__ import annotations

import pytest

from wealth_forecast.exceptions import ResearchResponseError
from wealth_forecast.schemas.forecast_output import ResearchPayload, SourceCitation
from wealth_forecast.tools.assumption_normalizer import (
    blend_expected_rate,
    compute_history_anchor,
    normalize_assumption,
    normalize_url,
    order_rates,
    sanitize_rate,
    sanitize_sources,
    validate_payload,
)

from tests.fixtures.conftest import make_investment, make_payload


def _payload(**overrides) -> ResearchPayload:
    return ResearchPayload.model_validate(make_payload(**overrides))


def _citations(*items) -> list[SourceCitation]:
    return [SourceCitation.model_validate(i) for i in items]


# ---------------------------------------------------------------------------
# Rates
# ---------------------------------------------------------------------------

class TestSanitizeRate:

    @pytest.mark.schema
    @pytest.mark.parametrize("raw,expected", [
        (500, 120.0),
        (-999, -80.0),
        (120.004, 120.0),
        (12.3456, 12.35),
        (-80.0, -80.0),
        (0, 0),
    ])
    def test_clamp_and_round(self, raw, expected):
        assert sanitize_rate(raw) == pytest.approx(expected)


class TestHistoryAnchor:

    @pytest.mark.schema
    def test_three_and_five_year(self):
        assert compute_history_anchor(_payload(threeYearCagrPct=8.0, fiveYearCagrPct=6.0)) == pytest.approx(7.0)

    @pytest.mark.schema
    def test_one_year_discounted(self):
        assert compute_history_anchor(_payload(oneYearReturnPct=20.0)) == pytest.approx(12.0)

    @pytest.mark.schema
    def test_all_four_signals(self):
        p = _payload(
            oneYearReturnPct=10.0,
            threeYearCagrPct=12.0,
            fiveYearCagrPct=11.0,
            sinceInceptionCagrPct=15.0,
        )
        assert compute_history_anchor(p) == pytest.approx((12.0 + 11.0 + 15.0 + 6.0) / 4)

    @pytest.mark.schema
    def test_ytd_is_not_a_signal(self):
        assert compute_history_anchor(_payload(ytdReturnPct=40.0)) is None

    @pytest.mark.schema
    def test_no_signals(self):
        assert compute_history_anchor(_payload()) is None


class TestBlendExpectedRate:

    @pytest.mark.schema
    def test_blend(self):
        assert blend_expected_rate(10.0, 7.0) == pytest.approx(8.65)

    @pytest.mark.schema
    def test_no_anchor_passthrough(self):
        assert blend_expected_rate(10.12, None) == 10.12

    @pytest.mark.schema
    def test_blend_is_clamped(self):
        assert blend_expected_rate(120.0, 400.0) == 120.0


class TestOrderRates:

    @pytest.mark.schema
    def test_sorted(self):
        assert order_rates(15.0, 5.0, 10.0) == (5.0, 10.0, 15.0)

    @pytest.mark.schema
    def test_already_ordered_unchanged(self):
        assert order_rates(4.0, 8.0, 12.0) == (4.0, 8.0, 12.0)


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class TestNormalizeUrl:

    @pytest.mark.schema
    def test_fragment_stripped(self):
        assert normalize_url("https://example.com/fund?id=1#returns") == "https://example.com/fund?id=1"

    @pytest.mark.schema
    @pytest.mark.parametrize("url", ["https://a.com", "https://a.com/", "https://a.com#top"])
    def test_bare_host_gets_root_path(self, url):
        assert normalize_url(url) == "https://a.com/"

    @pytest.mark.schema
    @pytest.mark.parametrize("url", [
        "https://vertexaisearch.cloud.google.com/grounding-api-redirect/AbC",
        "https://sub.vertexaisearch.cloud.google.com/x",
        "https://example.com/grounding-api-redirect/123",
        "ftp://example.com/file",
        "not a url",
        "/relative/path",
    ])
    def test_rejected(self, url):
        assert normalize_url(url) is None


class TestSanitizeSources:

    @pytest.mark.schema
    def test_redirects_dropped(self):
        result = sanitize_sources(_citations(
            "https://vertexaisearch.cloud.google.com/grounding-api-redirect/abc",
            {"title": "Tracker", "uri": "https://news.example.com/grounding-api-redirect/x"},
            "https://www.amfiindia.com/",
        ))
        assert [s.uri for s in result] == ["https://www.amfiindia.com/"]

    @pytest.mark.schema
    def test_duplicates_after_fragment_strip_kept_once(self):
        result = sanitize_sources(_citations(
            "https://example.com/a#one",
            {"title": "Example A", "uri": "https://example.com/a"},
            "https://example.com/b",
        ))
        assert [s.uri for s in result] == ["https://example.com/a", "https://example.com/b"]
        assert result[0].title == "example.com"

    @pytest.mark.schema
    def test_bare_host_and_root_path_kept_once(self):
        result = sanitize_sources(_citations("https://a.com", "https://a.com/"))
        assert [s.uri for s in result] == ["https://a.com/"]

    @pytest.mark.schema
    def test_capped_at_five(self):
        result = sanitize_sources(_citations(*[f"https://site{i}.com/" for i in range(8)]))
        assert len(result) == 5
        assert result[0].uri == "https://site0.com/"

    @pytest.mark.schema
    def test_primary_url_first(self):
        result = sanitize_sources(
            _citations("https://other.com/", "https://fund.example.com/page"),
            primary_url="https://fund.example.com/page#top",
        )
        assert [s.uri for s in result] == ["https://fund.example.com/page", "https://other.com/"]

    @pytest.mark.schema
    def test_empty(self):
        assert sanitize_sources([]) == []


# ---------------------------------------------------------------------------
# Payload → Assumption
# ---------------------------------------------------------------------------

class TestValidatePayload:

    @pytest.mark.schema
    def test_invalid_names_investment(self):
        inv = make_investment(id="hdfc", name="HDFC Flexi Cap")
        with pytest.raises(ResearchResponseError, match="HDFC Flexi Cap") as exc:
            validate_payload(make_payload(confidence="certain"), inv)
        assert exc.value.investment_id == "hdfc"

    @pytest.mark.schema
    def test_non_object_rejected(self):
        with pytest.raises(ResearchResponseError):
            validate_payload([1, 2, 3], make_investment())


class TestNormalizeAssumption:

    @pytest.mark.schema
    def test_ordering_restored(self):
        inv = make_investment()
        a = normalize_assumption(inv, _payload(
            conservativeAnnualReturnPct=15.0,
            expectedAnnualReturnPct=10.0,
            aggressiveAnnualReturnPct=5.0,
        ))
        assert a.conservative_annual_return_pct == 5.0
        assert a.expected_annual_return_pct == 10.0
        assert a.aggressive_annual_return_pct == 15.0

    @pytest.mark.schema
    def test_range_clamped(self):
        a = normalize_assumption(make_investment(), _payload(
            conservativeAnnualReturnPct=-999.0,
            expectedAnnualReturnPct=10.0,
            aggressiveAnnualReturnPct=500.0,
        ))
        assert a.conservative_annual_return_pct == -80.0
        assert a.aggressive_annual_return_pct == 120.0

    @pytest.mark.schema
    def test_blended_expected(self):
        a = normalize_assumption(make_investment(), _payload(
            conservativeAnnualReturnPct=4.0,
            expectedAnnualReturnPct=10.0,
            aggressiveAnnualReturnPct=14.0,
            threeYearCagrPct=8.0,
            fiveYearCagrPct=6.0,
        ))
        assert a.expected_annual_return_pct == pytest.approx(8.65)
        assert a.three_year_cagr_pct == 8.0
        assert a.five_year_cagr_pct == 6.0

    @pytest.mark.schema
    def test_blend_below_conservative_is_reordered(self):
        a = normalize_assumption(make_investment(), _payload(
            conservativeAnnualReturnPct=9.0,
            expectedAnnualReturnPct=10.0,
            aggressiveAnnualReturnPct=14.0,
            threeYearCagrPct=2.0,
        ))
        # 0.55*10 + 0.45*2 = 6.4
        assert a.conservative_annual_return_pct == pytest.approx(6.4)
        assert a.expected_annual_return_pct == 9.0
        assert a.aggressive_annual_return_pct == 14.0

    @pytest.mark.schema
    def test_no_history_passthrough(self):
        a = normalize_assumption(make_investment(), _payload(expectedAnnualReturnPct=10.123))
        assert a.expected_annual_return_pct == 10.12

    @pytest.mark.schema
    def test_carries_investment_id_and_research(self):
        inv = make_investment(id="axis-bluechip", sourceUrl="https://www.axismf.com/bluechip")
        a = normalize_assumption(inv, _payload(historyAsOf="2026-09-30", confidence="high"))
        assert a.investment_id == "axis-bluechip"
        assert a.history_as_of == "2026-09-30"
        assert a.confidence == "high"
        assert a.sources[0].uri == "https://www.axismf.com/bluechip"
        assert a.sources[0].title == "axismf.com"
        assert len(a.sources) == 3

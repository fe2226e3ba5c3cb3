"""Sample weekly report payloads for tests."""

import copy
from typing import Any, Dict, List, Optional

DEFAULT_PICKS: List[Dict[str, Any]] = [
    {
        "ticker": "NVDA",
        "exchange": "NASDAQ",
        "side": "long",
        "target_change_pct": 12.5,
        "rationale": "Data-center demand keeps outrunning supply.",
    },
    {
        "ticker": "JPM",
        "exchange": "NYSE",
        "side": "long",
        "target_change_pct": 6.25,
        "rationale": "Net interest margin holds up better than priced in.",
    },
    {
        "ticker": "TSLA",
        "exchange": "NASDAQ",
        "side": "short",
        "target_change_pct": -15,
        "rationale": "Delivery guidance looks stretched into Q1.",
    },
]


def make_pick(ticker: str = "AAPL", side: str = "long", target_change_pct: float = 5.0, **overrides) -> Dict[str, Any]:
    pick = {
        "ticker": ticker,
        "exchange": "NASDAQ",
        "side": side,
        "target_change_pct": target_change_pct,
        "rationale": f"{ticker} thesis for the week.",
    }
    pick.update(overrides)
    return pick


def make_report_payload(
    published_at: str = "2025-01-07T14:30:00Z",
    picks: Optional[List[Dict[str, Any]]] = None,
    **overrides,
) -> Dict[str, Any]:
    """Build a valid v1 payload; keyword overrides replace root fields."""
    payload = {
        "schema_version": "v1",
        "published_at": published_at,
        "title": "US Market Weekly: Earnings Season Kicks Off",
        "summary": "Three picks into the first full week of January.",
        "source_checksum": "sha256:2f1c0b7e",
        "picks": copy.deepcopy(DEFAULT_PICKS) if picks is None else picks,
    }
    payload.update(overrides)
    return payload


def make_picks(count: int) -> List[Dict[str, Any]]:
    tickers = ["AAPL", "MSFT", "AMZN", "GOOGL", "META", "NFLX", "AMD", "INTC"]
    return [make_pick(ticker=tickers[i % len(tickers)] + ("" if i < len(tickers) else str(i))) for i in range(count)]


def report_filename(day: str = "2025-01-07") -> str:
    return f"{day}report.json"

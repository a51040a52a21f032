"""
Offline performance report over stored scan records.

Summarizes recent scans, ranks buy/sell venue combinations by potential
profit and exports profitable opportunities to CSV.
"""

import csv
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence

from tabulate import tabulate

from pair_arbitrage.utils import calculate_percentage, timestamp_to_iso

from .store import MS_PER_DAY

CSV_HEADERS = [
    "Date",
    "Exchange A",
    "Exchange B",
    "Pair",
    "Direction",
    "Buy Price",
    "Sell Price",
    "Profit",
    "Spread %",
]


@dataclass
class VenuePairStats:
    buy_exchange: str
    sell_exchange: str
    count: int = 0
    total_profit: float = 0.0

    @property
    def avg_profit(self) -> float:
        return self.total_profit / self.count if self.count else 0.0


@dataclass
class PerformanceReport:
    """Aggregates over the most recent scan records."""

    total_scans: int
    profitable_scans: int
    total_profit: float
    avg_profit: float
    max_profit: float
    last_24h_scans: int
    last_24h_profitable: int
    top_pairs: List[VenuePairStats] = field(default_factory=list)
    daily: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def profitability_rate(self) -> float:
        return calculate_percentage(self.profitable_scans, self.total_scans)

    @property
    def last_24h_rate(self) -> float:
        return calculate_percentage(self.last_24h_profitable, self.last_24h_scans)


def build_report(
    scans: Sequence[Dict[str, Any]],
    daily: Sequence[Dict[str, Any]],
    now_ms: int,
    top_n: int = 5,
) -> PerformanceReport:
    """
    Build a report from scan rows (as returned by ResultStore.recent_scans).

    Profit figures cover profitable rows only (estimated_profit > 0).
    """
    profitable = [s for s in scans if s["estimated_profit"] > 0]
    profits = [float(s["estimated_profit"]) for s in profitable]

    by_pair: Dict[tuple, VenuePairStats] = {}
    for scan in profitable:
        key = (scan["dex_a"], scan["dex_b"])
        stats = by_pair.setdefault(key, VenuePairStats(*key))
        stats.count += 1
        stats.total_profit += float(scan["estimated_profit"])

    top_pairs = sorted(by_pair.values(), key=lambda s: s.total_profit, reverse=True)

    recent = [s for s in scans if now_ms - s["timestamp"] < MS_PER_DAY]

    return PerformanceReport(
        total_scans=len(scans),
        profitable_scans=len(profitable),
        total_profit=sum(profits),
        avg_profit=sum(profits) / len(profits) if profits else 0.0,
        max_profit=max(profits) if profits else 0.0,
        last_24h_scans=len(recent),
        last_24h_profitable=sum(1 for s in recent if s["estimated_profit"] > 0),
        top_pairs=top_pairs[:top_n],
        daily=list(daily),
    )


def format_report(report: PerformanceReport) -> str:
    """Render the report as console tables."""
    sections = []

    summary = [
        ["Total opportunities scanned", report.total_scans],
        ["Profitable opportunities", report.profitable_scans],
        ["Profitability rate", f"{report.profitability_rate:.2f}%"],
        ["Total potential profit", f"${report.total_profit:.2f}"],
        ["Average profit per opportunity", f"${report.avg_profit:.2f}"],
        ["Maximum single opportunity", f"${report.max_profit:.2f}"],
    ]
    sections.append("SUMMARY STATISTICS\n" + tabulate(summary, tablefmt="grid"))

    if report.top_pairs:
        rows = [
            [
                i,
                f"{p.buy_exchange} -> {p.sell_exchange}",
                p.count,
                f"${p.total_profit:.2f}",
                f"${p.avg_profit:.2f}",
            ]
            for i, p in enumerate(report.top_pairs, 1)
        ]
        table = tabulate(
            rows, headers=["#", "Buy -> Sell", "Count", "Total", "Avg"], tablefmt="grid"
        )
    else:
        table = "No profitable opportunities"
    sections.append("TOP EXCHANGE PAIRS\n" + table)

    last_24h = [
        ["Opportunities", report.last_24h_scans],
        ["Profitable", report.last_24h_profitable],
        ["Rate", f"{report.last_24h_rate:.2f}%"],
    ]
    sections.append("LAST 24 HOURS\n" + tabulate(last_24h, tablefmt="grid"))

    if report.daily:
        rows = [
            [
                day["date"],
                day["total_scans"],
                day["profitable_scans"],
                f"${float(day['total_profit'] or 0):.2f}",
                f"${float(day['max_profit'] or 0):.2f}",
            ]
            for day in report.daily
        ]
        table = tabulate(
            rows,
            headers=["Date", "Scans", "Profitable", "Total Profit", "Max Profit"],
            tablefmt="grid",
        )
    else:
        table = "No daily metrics yet"
    sections.append("DAILY BREAKDOWN\n" + table)

    return "\n\n".join(sections)


def export_profitable_csv(
    scans: Sequence[Dict[str, Any]], out_dir: str, date: str
) -> Path:
    """
    Write profitable scan rows to ``<out_dir>/profitable_opportunities_<date>.csv``.

    Returns:
        Path of the written file
    """
    path = Path(out_dir) / f"profitable_opportunities_{date}.csv"
    path.parent.mkdir(parents=True, exist_ok=True)

    with path.open("w", newline="") as f:
        w = csv.writer(f)
        w.writerow(CSV_HEADERS)
        for scan in scans:
            if scan["estimated_profit"] <= 0:
                continue
            w.writerow(
                [
                    timestamp_to_iso(scan["timestamp"] / 1000),
                    scan["dex_a"],
                    scan["dex_b"],
                    scan["pair"],
                    scan["direction"],
                    scan["buy_price"],
                    scan["sell_price"],
                    scan["estimated_profit"],
                    scan["price_difference_pct"],
                ]
            )
    return path

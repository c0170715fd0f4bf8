# aggregator.py
"""
Turns raw report / reward / collection-task records into dashboard metrics.

Everything here is a pure function of its inputs. Records may be model
instances or plain dicts (snake_case or the camelCase keys the browser sends);
malformed fields degrade to zero instead of raising.
"""
from __future__ import annotations

import calendar
import re
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from models import utcnow, waste_category
from rules import (
    CO2_PER_KG, DEFAULT_SPLIT, MONTH_WINDOW, RECYCLING_RULES,
    SUSTAINABILITY_FACTORS, WASTE_COMPOSITION,
)

_AMOUNT_RE = re.compile(r"(\d+(\.\d+)?)")


# ---------------- Records ----------------

@dataclass(frozen=True)
class ImpactSummary:
    waste_collected: float = 0.0
    reports_submitted: int = 0
    tokens_earned: int = 0
    co2_offset: float = 0.0

    def to_dict(self) -> dict:
        return {
            "wasteCollected": self.waste_collected,
            "reportsSubmitted": self.reports_submitted,
            "tokensEarned": self.tokens_earned,
            "co2Offset": self.co2_offset,
        }


@dataclass
class MonthlyBucket:
    month: str
    year: int
    organic: float = 0.0
    recyclable: float = 0.0
    hazardous: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class RecyclingRate:
    category: str
    rate: int
    target: int


@dataclass(frozen=True)
class SustainabilityMetrics:
    carbon_reduction: int = 0
    energy_saved: int = 0
    water_saved: int = 0
    trees_equivalent: int = 0

    def to_dict(self) -> dict:
        return {
            "carbonReduction": self.carbon_reduction,
            "energySaved": self.energy_saved,
            "waterSaved": self.water_saved,
            "treesEquivalent": self.trees_equivalent,
        }


@dataclass(frozen=True)
class CompositionSlice:
    name: str
    value: int
    color: str


@dataclass
class ChartSeries:
    waste_collection: list[MonthlyBucket] = field(default_factory=list)
    recycling_rates: list[RecyclingRate] = field(default_factory=list)
    sustainability_metrics: SustainabilityMetrics = field(default_factory=SustainabilityMetrics)
    waste_composition: list[CompositionSlice] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "wasteCollection": [asdict(b) for b in self.waste_collection],
            "recyclingRates": [asdict(r) for r in self.recycling_rates],
            "sustainabilityMetrics": self.sustainability_metrics.to_dict(),
            "wasteComposition": [asdict(c) for c in self.waste_composition],
        }


# ---------------- Helpers ----------------

def round_half_up(value: float, places: int = 0) -> float:
    """Halves round up (1.75 -> 1.8), not to even."""
    try:
        q = Decimal(1).scaleb(-places)
        return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0.0


def _field(record, *names):
    for name in names:
        if isinstance(record, dict):
            if name in record:
                return record[name]
        elif hasattr(record, name):
            return getattr(record, name)
    return None


def extract_amount(raw) -> float:
    """Leading numeric token of a free-text amount ("2.5 kg" -> 2.5), 0 if none."""
    if raw is None:
        return 0.0
    m = _AMOUNT_RE.search(str(raw))
    return float(m.group(1)) if m else 0.0


def _as_datetime(raw) -> datetime | None:
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day)
    elif isinstance(raw, str) and raw.strip():
        try:
            dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def month_window(now: datetime | None = None, months: int = MONTH_WINDOW) -> list[tuple[int, int]]:
    """(year, month) pairs for the trailing window, oldest first."""
    now = now or utcnow()
    out = []
    for back in range(months - 1, -1, -1):
        y, m = now.year, now.month - back
        while m <= 0:
            m += 12
            y -= 1
        out.append((y, m))
    return out


# ---------------- Operations ----------------

def compute_impact_summary(reports, rewards, tasks) -> ImpactSummary:
    waste = sum(extract_amount(_field(t, "amount")) for t in tasks or [])
    tokens = 0
    for r in rewards or []:
        pts = _field(r, "points")
        try:
            tokens += int(pts or 0)
        except (TypeError, ValueError):
            continue
    waste_collected = round_half_up(waste, 1)
    return ImpactSummary(
        waste_collected=waste_collected,
        reports_submitted=len(reports or []),
        tokens_earned=tokens,
        co2_offset=round_half_up(waste_collected * CO2_PER_KG, 1),
    )


def _bucket_tasks(tasks, now: datetime | None) -> list[MonthlyBucket]:
    window = month_window(now)
    buckets = {
        (y, m): MonthlyBucket(month=calendar.month_abbr[m], year=y)
        for y, m in window
    }
    for task in tasks or []:
        created = _as_datetime(_field(task, "created_at", "createdAt"))
        if created is None:
            continue
        b = buckets.get((created.year, created.month))
        if b is None:
            continue
        amount = extract_amount(_field(task, "amount"))
        category = waste_category(_field(task, "waste_type", "type"))
        if category:
            setattr(b, category, getattr(b, category) + amount)
        else:
            for name, frac in DEFAULT_SPLIT.items():
                setattr(b, name, getattr(b, name) + amount * frac)
        b.total += amount

    out = []
    for key in window:
        b = buckets[key]
        for name in ("organic", "recyclable", "hazardous", "total"):
            setattr(b, name, round_half_up(getattr(b, name), 1))
        out.append(b)
    return out


def recycling_rates(waste_collected: float) -> list[RecyclingRate]:
    rows = []
    for category, rule in RECYCLING_RULES.items():
        if waste_collected > 0:
            rate = min(rule["cap"], int(round_half_up(rule["recycled"] / rule["share"] * 100)))
        else:
            rate = 0
        rows.append(RecyclingRate(category=category, rate=rate, target=rule["target"]))
    return rows


def sustainability_metrics(summary: ImpactSummary) -> SustainabilityMetrics:
    f = SUSTAINABILITY_FACTORS
    return SustainabilityMetrics(
        carbon_reduction=int(round_half_up(summary.co2_offset)),
        energy_saved=int(round_half_up(summary.waste_collected * f["energy_kwh_per_kg"])),
        water_saved=int(round_half_up(summary.waste_collected * f["water_l_per_kg"])),
        trees_equivalent=int(round_half_up(summary.co2_offset / f["co2_kg_per_tree"])),
    )


def waste_composition() -> list[CompositionSlice]:
    return [CompositionSlice(**c) for c in WASTE_COMPOSITION]


def compute_chart_series(reports, rewards, tasks, summary: ImpactSummary,
                         now: datetime | None = None) -> ChartSeries:
    return ChartSeries(
        waste_collection=_bucket_tasks(tasks, now),
        recycling_rates=recycling_rates(summary.waste_collected),
        sustainability_metrics=sustainability_metrics(summary),
        waste_composition=waste_composition(),
    )


def fallback_report() -> tuple[ImpactSummary, ChartSeries]:
    """What the dashboard shows when a fetch failed: zeros, fixed tables, no months."""
    return ImpactSummary(), ChartSeries(
        waste_collection=[],
        recycling_rates=recycling_rates(0),
        sustainability_metrics=SustainabilityMetrics(),
        waste_composition=waste_composition(),
    )

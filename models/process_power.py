"""
Model for reducing Envoy production.json responses to power totals.
Author: Johandré van Deventer
Date: 2025-06-13
"""

from dataclasses import dataclass, field
from datetime import datetime
from numbers import Real
from typing import Any, Callable, Dict, Iterable, List

import pandas as pd

from api.errors import ResponseDecodeError

EIM = "eim"
TOTAL_CONSUMPTION = "total-consumption"
NET_CONSUMPTION = "net-consumption"


@dataclass(frozen=True)
class PowerReading:
    """Instantaneous power in watts. A positive net means importing from the grid."""

    production: float
    consumption: float
    net: float
    timestamp: datetime = field(default_factory=datetime.now, compare=False)


def _entries(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = data.get(key)
    if not isinstance(entries, list):
        raise ResponseDecodeError(f"'{key}' must be a list, got {type(entries).__name__}")
    for entry in entries:
        if not isinstance(entry, dict):
            raise ResponseDecodeError(f"'{key}' entries must be objects")
    return entries


def _sum_w_now(
    entries: Iterable[Dict[str, Any]], predicate: Callable[[Dict[str, Any]], bool]
) -> float:
    total = 0
    for entry in entries:
        if not predicate(entry):
            continue
        w_now = entry.get("wNow")
        # bool is a Real subclass
        if isinstance(w_now, bool) or not isinstance(w_now, Real):
            raise ResponseDecodeError(f"Metering entry has non-numeric wNow: {w_now!r}")
        total += w_now
    return total


def process_production_response(data: Any) -> PowerReading:
    """Reduce a production.json?details=1 body to production, consumption and net.

    Only "eim" (metered) channels count. Missing matches add up to zero.
    """
    if not isinstance(data, dict):
        raise ResponseDecodeError("Production response must be a JSON object")

    production_entries = _entries(data, "production")
    consumption_entries = _entries(data, "consumption")

    production = _sum_w_now(production_entries, lambda e: e.get("type") == EIM)
    consumption = _sum_w_now(
        consumption_entries,
        lambda e: e.get("type") == EIM and e.get("measurementType") == TOTAL_CONSUMPTION,
    )
    net = _sum_w_now(
        consumption_entries,
        lambda e: e.get("type") == EIM and e.get("measurementType") == NET_CONSUMPTION,
    )

    return PowerReading(production=production, consumption=consumption, net=net)


def readings_to_dataframe(readings: List[PowerReading]) -> pd.DataFrame:
    """Tabulate readings with a Time column first, the way the CSV output is laid out."""
    columns = ["Time", "Production (W)", "Consumption (W)", "Net (W)"]
    if not readings:
        return pd.DataFrame(columns=columns)

    df = pd.DataFrame(
        {
            "Time": pd.to_datetime([r.timestamp for r in readings]),
            "Production (W)": [r.production for r in readings],
            "Consumption (W)": [r.consumption for r in readings],
            "Net (W)": [r.net for r in readings],
        },
        columns=columns,
    )

    for col in columns[1:]:
        df[col] = pd.to_numeric(df[col], downcast="float")

    return df

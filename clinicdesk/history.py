"""Treated-patient history filtering."""
import datetime as dt
from datetime import timedelta
from typing import List

from clinicdesk.models import TreatedPatient
from clinicdesk.state import HistoryWindow

WEEK = timedelta(days=7)


def filter_history(
    records: List[TreatedPatient],
    window: HistoryWindow,
    now: dt.datetime
) -> List[TreatedPatient]:
    """
    Keep the records that fall inside the window.

    Args:
        records: History entries (any order; order is preserved)
        window: TODAY (same calendar day as now), WEEK (last 7 days) or ALL
        now: Aware reference time; its timezone decides calendar days

    Returns:
        Filtered records
    """
    if window == HistoryWindow.ALL:
        return list(records)

    if window == HistoryWindow.TODAY:
        return [
            r for r in records
            if r.treated_at.astimezone(now.tzinfo).date() == now.date()
        ]

    cutoff = now - WEEK
    return [r for r in records if r.treated_at >= cutoff]

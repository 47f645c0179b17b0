"""Date normalization and recency ranking of session records."""

from collections.abc import Iterable
from datetime import datetime, timezone

from memento.context.models import SessionRecord, SessionSummary

UNKNOWN_DATE = "Unknown"


def normalize_date(value: object) -> str:
    """Return a sortable date string for a stored timestamp.

    Strings pass through unchanged. Numbers are epoch milliseconds and become
    ISO-8601 UTC strings with millisecond precision, e.g.
    ``2023-11-14T22:13:20.000Z``. Anything else is ``"Unknown"``.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return UNKNOWN_DATE
    try:
        moment = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return UNKNOWN_DATE
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def rank(
    records: Iterable[SessionRecord],
    limit: int,
    drop_invalid: bool = True,
) -> list[SessionSummary]:
    """Return up to ``limit`` sessions, most recent first.

    With ``drop_invalid``, records without an id or with an unknown date are
    left out. Records sharing a date keep their input order.
    """
    summaries = [
        SessionSummary(id=r.id, date=normalize_date(r.timestamp), summary=r.summary)
        for r in records
    ]
    if drop_invalid:
        summaries = [s for s in summaries if s.id and s.date != UNKNOWN_DATE]

    # sorted() stays stable with reverse=True
    summaries = sorted(summaries, key=lambda s: s.date, reverse=True)
    return summaries[: max(limit, 0)]

"""
Delivery deadline urgency, shared by the deadline list, quote list and
production dashboard so every view colours a quote the same way.
"""

import math
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

DAY_SECONDS = 24 * 60 * 60

UNDEFINED = "undefined"
OVERDUE = "overdue"
TODAY = "today"
WARNING = "warning"
INFO = "info"

WARNING_DAYS = 2

# Bootstrap-style badge per bucket
BUCKET_VARIANTS = {
    UNDEFINED: "secondary",
    OVERDUE: "danger",
    TODAY: "warning",
    WARNING: "warning",
    INFO: "info",
}


@dataclass(frozen=True)
class Deadline:
    bucket: str
    days_delta: Optional[int] = None
    delivery: Optional[datetime] = None

    @property
    def magnitude(self) -> Optional[int]:
        """Days overdue / days left, always positive."""
        return None if self.days_delta is None else abs(self.days_delta)

    @property
    def label(self) -> str:
        if self.bucket == UNDEFINED:
            return "No delivery date"
        if self.bucket == OVERDUE:
            return f"{self.magnitude} day(s) overdue"
        if self.bucket == TODAY:
            return "Due today"
        return f"Due in {self.days_delta} day(s)"

    def to_dict(self) -> dict:
        return {
            "bucket": self.bucket,
            "days_delta": self.days_delta,
            "magnitude": self.magnitude,
            "label": self.label,
            "variant": BUCKET_VARIANTS[self.bucket],
            "delivery": self.delivery.isoformat() if self.delivery else None,
        }


def _parse(value: Union[datetime, str, None]) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _align(delivery: datetime, now: datetime):
    """Compare naive with naive, aware with aware (naive is taken as UTC)."""
    if (delivery.tzinfo is None) == (now.tzinfo is None):
        return delivery, now
    if delivery.tzinfo is None:
        return delivery.replace(tzinfo=timezone.utc), now
    return delivery, now.replace(tzinfo=timezone.utc)


def classify(delivery: Union[datetime, str, None], now: datetime) -> Deadline:
    """
    Bucket a delivery timestamp relative to `now`.

    days_delta = ceil((delivery - now) / 1 day)
      < 0  → overdue    (magnitude = abs(days_delta))
      == 0 → today
      1-2  → warning
      > 2  → info
    Missing or unparsable timestamps → undefined.
    """
    parsed = _parse(delivery)
    if parsed is None:
        return Deadline(bucket=UNDEFINED)

    parsed_aligned, now_aligned = _align(parsed, now)
    days_delta = math.ceil((parsed_aligned - now_aligned).total_seconds() / DAY_SECONDS)

    if days_delta < 0:
        bucket = OVERDUE
    elif days_delta == 0:
        bucket = TODAY
    elif days_delta <= WARNING_DAYS:
        bucket = WARNING
    else:
        bucket = INFO
    return Deadline(bucket=bucket, days_delta=days_delta, delivery=parsed)


def normalize_search(value: Optional[str]) -> str:
    """Accent- and punctuation-insensitive key: 'Orçamento #12' -> 'orcamento12'."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"[^a-z0-9]", "", stripped.lower())


def deadline_rows(
    quotes: Iterable,
    now: datetime,
    status: Optional[str] = None,
    query: Optional[str] = None,
) -> List[dict]:
    """
    Deadline list: filter by quote status and free-text query (code, client,
    responsible, current stage), then sort by delivery date, undated last.
    """
    needle = normalize_search((query or "").strip())
    rows = []
    for quote in quotes:
        quote_status = quote.status.value if hasattr(quote.status, "value") else quote.status
        if status and quote_status != status:
            continue
        if needle:
            haystack = [quote.code, quote.client_name, quote.responsible, quote.current_stage]
            if not any(needle in normalize_search(value) for value in haystack):
                continue
        rows.append((quote, quote_status, classify(quote.planned_delivery, now)))

    def sort_key(row):
        delivery = row[2].delivery
        if delivery is None:
            return (1, 0.0)
        if delivery.tzinfo is None:
            delivery = delivery.replace(tzinfo=timezone.utc)
        return (0, delivery.timestamp())

    rows.sort(key=sort_key)
    return [
        {
            "quote_id": quote.id,
            "code": quote.code,
            "client_name": quote.client_name,
            "status": quote_status,
            "responsible": quote.responsible,
            "current_stage": quote.current_stage,
            "deadline": deadline.to_dict(),
        }
        for quote, quote_status, deadline in rows
    ]

"""Follow-up and due-date business rules (pure functions).

Every function takes an optional ``today`` so callers (and tests) control the
clock; when omitted the business-timezone system clock is read.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Literal

import pandas as pd

from ro_tracker.core.calendar import add_business_days, add_days, resolve_today, to_date
from ro_tracker.core.config import (
    CARD_TERMS,
    NET_TERMS_PATTERN,
    ON_TRACK_RUNWAY_DAYS,
    SETTLED_TERMS,
    UNKNOWN_TERMS_DAYS,
    WIRE_PROCESSING_DAYS,
    WIRE_TERMS,
)
from ro_tracker.core.models import RepairOrder
from ro_tracker.core.status import STATUS_RULES, Status, follow_up_status

logger = logging.getLogger(__name__)

TermsKind = Literal["net", "settled", "wire", "unknown", "none"]

_NET_RE = re.compile(NET_TERMS_PATTERN)


@dataclass(frozen=True, slots=True)
class PaymentTerms:
    kind: TermsKind
    days: int | None
    raw: str = ""

    @property
    def recognized(self) -> bool:
        return self.kind != "unknown"


def parse_payment_terms(terms: str | None, *, unknown_days: int = UNKNOWN_TERMS_DAYS) -> PaymentTerms:
    """Classify a payment-terms string.

    Matching is case-insensitive and checked in order: ``NET <n>``, settled
    terms (COD, PREPAID), wire transfer, credit card. Anything else non-empty
    is ``"unknown"`` and carries ``unknown_days`` as a conservative follow-up.

    Examples
    --------
    >>> parse_payment_terms("net 45")
    PaymentTerms(kind='net', days=45, raw='NET 45')
    >>> parse_payment_terms("COD").days is None
    True
    """
    text = (terms or "").upper().strip()
    if not text:
        return PaymentTerms("none", None)
    match = _NET_RE.search(text)
    if match:
        return PaymentTerms("net", int(match.group(1)), text)
    if any(token in text for token in SETTLED_TERMS):
        return PaymentTerms("settled", None, text)
    if any(token in text for token in WIRE_TERMS):
        return PaymentTerms("wire", WIRE_PROCESSING_DAYS, text)
    if any(token in text for token in CARD_TERMS):
        return PaymentTerms("settled", None, text)
    return PaymentTerms("unknown", unknown_days, text)


def calculate_next_update_date(
    status: str | Status | None,
    status_date,
    payment_terms: str | None = None,
    *,
    unknown_terms_days: int = UNKNOWN_TERMS_DAYS,
) -> date | None:
    """Date of the next follow-up for an RO, or None when none is needed.

    Parameters
    ----------
    status : str | Status | None
        Current status, matched exactly after uppercase + trim. Aliases
        (e.g. "SHIPPED") are not recognized here and get the default offset.
    status_date : date-like
        When the status was set. Time of day is ignored.
    payment_terms : str | None
        Shop/RO payment terms, only consulted for PAID.

    Returns
    -------
    date | None
        None for terminal statuses (PAYMENT SENT, BER), for settled PAID
        orders, and when ``status_date`` is missing or malformed.
    """
    base = to_date(status_date)
    if base is None:
        return None
    normalized = follow_up_status(status)

    if normalized is Status.PAID:
        terms = parse_payment_terms(payment_terms, unknown_days=unknown_terms_days)
        if terms.kind == "none":
            logger.debug("PAID with no terms: no follow-up needed")
            return None
        if terms.kind == "unknown":
            logger.warning(
                "PAID with unrecognized terms %r: defaulting to %d days", terms.raw, unknown_terms_days
            )
        else:
            logger.debug("PAID with %s terms %r: follow-up in %s days", terms.kind, terms.raw, terms.days)
        if terms.days is None:
            return None
        return add_days(base, terms.days)

    offset = STATUS_RULES[normalized].follow_up_days
    if offset is None:
        return None
    return add_days(base, offset)


def calculate_days_in_status(status_date, today: date | datetime | None = None) -> int:
    """Whole days since ``status_date``, never negative; 0 when the date is missing."""
    start = to_date(status_date)
    if start is None:
        return 0
    return max(0, (resolve_today(today) - start).days)


def _days_until(next_date, today) -> int | None:
    due = to_date(next_date)
    if due is None:
        return None
    return (due - resolve_today(today)).days


def is_due_today(next_date, today: date | datetime | None = None) -> bool:
    return _days_until(next_date, today) == 0


def is_due_within_days(next_date, days: int, today: date | datetime | None = None) -> bool:
    remaining = _days_until(next_date, today)
    if remaining is None:
        return False
    return 0 <= remaining <= days


def is_on_track(
    next_date,
    today: date | datetime | None = None,
    *,
    runway_days: int = ON_TRACK_RUNWAY_DAYS,
) -> bool:
    """True when the next follow-up is more than ``runway_days`` away.

    No pending follow-up counts as on track.
    """
    remaining = _days_until(next_date, today)
    if remaining is None:
        return True
    return remaining > runway_days


def calculate_days_overdue(next_date, today: date | datetime | None = None) -> int:
    remaining = _days_until(next_date, today)
    if remaining is None:
        return 0
    return max(0, -remaining)


def is_overdue(next_date, today: date | datetime | None = None) -> bool:
    return calculate_days_overdue(next_date, today) > 0


def payment_due_date(invoice_date, net_days: int) -> date | None:
    """Payment reminder date: ``net_days`` business days after the invoice."""
    start = to_date(invoice_date)
    if start is None:
        return None
    return add_business_days(start, net_days)


def refresh_follow_up(
    ro: RepairOrder,
    terms: str | None = None,
    today: date | datetime | None = None,
    *,
    unknown_terms_days: int = UNKNOWN_TERMS_DAYS,
) -> RepairOrder:
    """Return a copy of ``ro`` with its follow-up fields recomputed.

    ``terms`` overrides the RO's own terms (e.g. the shop's default terms).
    """
    ref = resolve_today(today)
    next_date = calculate_next_update_date(
        ro.current_status,
        ro.current_status_date,
        terms if terms is not None else ro.terms,
        unknown_terms_days=unknown_terms_days,
    )
    days_overdue = calculate_days_overdue(next_date, ref)
    return replace(
        ro,
        status_history=list(ro.status_history),
        next_date_to_update=next_date,
        is_overdue=days_overdue > 0,
        days_overdue=days_overdue,
    )


def add_follow_up_metrics(
    df: pd.DataFrame,
    today: date | datetime | None = None,
    *,
    runway_days: int = ON_TRACK_RUNWAY_DAYS,
) -> pd.DataFrame:
    """Vectorized follow-up columns for a repair-order frame.

    Adds ``days_in_status``, ``days_overdue``, ``is_overdue``, ``due_today``
    and ``on_track`` from ``current_status_date`` and ``next_date_to_update``.
    """
    if df.empty:
        return df
    out = df.copy()
    ref = pd.Timestamp(resolve_today(today))

    def _dates(column: str) -> pd.Series:
        if column not in out.columns:
            return pd.Series(pd.NaT, index=out.index, dtype="datetime64[ns]")
        return pd.to_datetime(out[column].map(to_date), errors="coerce")

    status_dt = _dates("current_status_date")
    next_dt = _dates("next_date_to_update")

    out["days_in_status"] = (ref - status_dt).dt.days.clip(lower=0).fillna(0).astype(int)
    lapsed = (ref - next_dt).dt.days
    out["days_overdue"] = lapsed.clip(lower=0).fillna(0).astype(int)
    out["is_overdue"] = lapsed.gt(0)
    out["due_today"] = lapsed.eq(0)
    out["on_track"] = next_dt.isna() | (-lapsed).gt(runway_days)
    return out

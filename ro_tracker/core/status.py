"""Status normalization and classification.

Every call site that needs to know whether a status is terminal, which archive
bucket it belongs to, or where it sits in the repair flow reads the single
table in this module (``STATUS_RULES``) instead of matching substrings of the
raw status text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .config import DEFAULT_FOLLOW_UP_DAYS, FOLLOW_UP_DAYS, FORWARD_SEQUENCE, PAID_MARKER, STATUS_ALIASES


class Status(str, Enum):
    TO_SEND = "TO SEND"
    WAITING_QUOTE = "WAITING QUOTE"
    APPROVED = "APPROVED"
    BEING_REPAIRED = "BEING REPAIRED"
    CURRENTLY_BEING_SHIPPED = "CURRENTLY BEING SHIPPED"
    SHIPPING = "SHIPPING"
    RECEIVED = "RECEIVED"
    PAID = "PAID"
    NET = "NET"
    PAYMENT_SENT = "PAYMENT SENT"
    BER = "BER"
    RAI = "RAI"
    CANCELLED = "CANCELLED"
    SCRAPPED = "SCRAPPED"
    UNKNOWN = "UNKNOWN"


class StatusCategory(str, Enum):
    INTAKE = "intake"
    QUOTE = "quote"
    REPAIR = "repair"
    TRANSIT = "transit"
    RECEIVED = "received"
    PAYMENT = "payment"
    CLOSED = "closed"
    RETURNED = "returned"
    UNKNOWN = "unknown"


class ArchiveBucket(str, Enum):
    PAID = "PAID"
    NET = "NET"
    RETURNS = "RETURNS"


@dataclass(frozen=True, slots=True)
class StatusRule:
    category: StatusCategory
    is_terminal: bool
    completes_repair: bool = False
    follow_up_days: int | None = None
    archive: ArchiveBucket | None = None


STATUS_RULES: dict[Status, StatusRule] = {
    Status.TO_SEND: StatusRule(StatusCategory.INTAKE, False, follow_up_days=FOLLOW_UP_DAYS["TO SEND"]),
    Status.WAITING_QUOTE: StatusRule(
        StatusCategory.QUOTE, False, follow_up_days=FOLLOW_UP_DAYS["WAITING QUOTE"]
    ),
    Status.APPROVED: StatusRule(StatusCategory.REPAIR, False, follow_up_days=FOLLOW_UP_DAYS["APPROVED"]),
    Status.BEING_REPAIRED: StatusRule(
        StatusCategory.REPAIR, False, follow_up_days=FOLLOW_UP_DAYS["BEING REPAIRED"]
    ),
    Status.CURRENTLY_BEING_SHIPPED: StatusRule(
        StatusCategory.TRANSIT, False, follow_up_days=FOLLOW_UP_DAYS["CURRENTLY BEING SHIPPED"]
    ),
    Status.SHIPPING: StatusRule(StatusCategory.TRANSIT, False, follow_up_days=FOLLOW_UP_DAYS["SHIPPING"]),
    Status.RECEIVED: StatusRule(
        StatusCategory.RECEIVED, False, completes_repair=True, follow_up_days=FOLLOW_UP_DAYS["RECEIVED"]
    ),
    # Follow-up for PAID depends on payment terms (see follow_up.py)
    Status.PAID: StatusRule(StatusCategory.PAYMENT, True, completes_repair=True, archive=ArchiveBucket.PAID),
    Status.NET: StatusRule(
        StatusCategory.PAYMENT,
        True,
        completes_repair=True,
        follow_up_days=DEFAULT_FOLLOW_UP_DAYS,
        archive=ArchiveBucket.NET,
    ),
    # PAYMENT SENT and BER close the follow-up loop (follow_up_days=None)
    Status.PAYMENT_SENT: StatusRule(StatusCategory.CLOSED, True, completes_repair=True),
    Status.BER: StatusRule(StatusCategory.RETURNED, True, archive=ArchiveBucket.RETURNS),
    # Returned parts still have to come back from the shop
    Status.RAI: StatusRule(
        StatusCategory.RETURNED, True, follow_up_days=DEFAULT_FOLLOW_UP_DAYS, archive=ArchiveBucket.RETURNS
    ),
    Status.CANCELLED: StatusRule(
        StatusCategory.RETURNED, True, follow_up_days=DEFAULT_FOLLOW_UP_DAYS, archive=ArchiveBucket.RETURNS
    ),
    Status.SCRAPPED: StatusRule(StatusCategory.RETURNED, True, follow_up_days=DEFAULT_FOLLOW_UP_DAYS),
    Status.UNKNOWN: StatusRule(StatusCategory.UNKNOWN, False, follow_up_days=DEFAULT_FOLLOW_UP_DAYS),
}

# Position in the forward sequence; statuses sharing a stage share an index
_STAGE_INDEX: dict[Status, float] = {Status(name): float(i) for i, name in enumerate(FORWARD_SEQUENCE)}
_STAGE_INDEX[Status.CURRENTLY_BEING_SHIPPED] = _STAGE_INDEX[Status.SHIPPING]
_STAGE_INDEX[Status.RECEIVED] = _STAGE_INDEX[Status.SHIPPING] + 0.5

SHIPPED_STATUSES: frozenset[Status] = frozenset({Status.SHIPPING, Status.CURRENTLY_BEING_SHIPPED})


def _clean(value: str | None) -> str:
    if value is None:
        return ""
    return " ".join(str(value).upper().split())


def normalize_status(value: str | Status | None) -> Status:
    """Map a raw status string to a :class:`Status` member.

    Uppercases and collapses whitespace before consulting ``STATUS_ALIASES``.
    Trailing decoration such as ``"PAID >>>>"`` is tolerated. Anything else
    maps to ``Status.UNKNOWN``.

    Examples
    --------
    >>> normalize_status(" waiting quote ")
    <Status.WAITING_QUOTE: 'WAITING QUOTE'>
    >>> normalize_status("PAID >>>>")
    <Status.PAID: 'PAID'>
    """
    if isinstance(value, Status):
        return value
    text = _clean(value)
    if not text:
        return Status.UNKNOWN
    if text in STATUS_ALIASES:
        return Status(STATUS_ALIASES[text])
    stripped = re.sub(r"[^A-Z ]+", " ", text)
    stripped = " ".join(stripped.split())
    if stripped in STATUS_ALIASES:
        return Status(STATUS_ALIASES[stripped])
    return Status.UNKNOWN


def follow_up_status(value: str | Status | None) -> Status:
    """Exact status match used for follow-up scheduling.

    Only uppercase and trim are applied. Aliases and decoration are not
    recognized (apart from the literal ``"PAID >>>>"``), so variants such as
    ``"SHIPPED"`` map to ``Status.UNKNOWN`` and get the default offset.

    >>> follow_up_status(" shipping ")
    <Status.SHIPPING: 'SHIPPING'>
    >>> follow_up_status("SHIPPED")
    <Status.UNKNOWN: 'UNKNOWN'>
    """
    if isinstance(value, Status):
        return value
    text = "" if value is None else str(value).upper().strip()
    if text == PAID_MARKER:
        return Status.PAID
    try:
        return Status(text)
    except ValueError:
        return Status.UNKNOWN


def status_rule(value: str | Status | None) -> StatusRule:
    return STATUS_RULES[normalize_status(value)]


def is_terminal_status(value: str | Status | None) -> bool:
    """True for statuses that take an RO out of the active workload."""
    return status_rule(value).is_terminal


def is_active_status(value: str | Status | None) -> bool:
    return not is_terminal_status(value)


def is_completion_status(value: str | Status | None) -> bool:
    """True when reaching this status means the repair itself is finished."""
    return status_rule(value).completes_repair


def archive_destination(value: str | Status | None) -> ArchiveBucket | None:
    """Archive bucket an RO moves to once its final status is confirmed."""
    return status_rule(value).archive


def requires_archive_approval(value: str | Status | None) -> bool:
    return archive_destination(value) is not None


def stage_index(value: str | Status | None) -> float | None:
    """Position of a status in ``FORWARD_SEQUENCE`` or None when off-sequence."""
    return _STAGE_INDEX.get(normalize_status(value))


def remaining_stages(value: str | Status | None) -> list[Status]:
    """Forward-sequence stages still ahead of ``value`` (exclusive)."""
    index = stage_index(value)
    if index is None:
        return []
    return [Status(name) for i, name in enumerate(FORWARD_SEQUENCE) if i > index]

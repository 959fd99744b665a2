# Overview: Service-layer invoice numbering; year-scoped sequential numbers with optimistic conflict retry.

from __future__ import annotations

import re
import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import EmployeeSale, Sale
from ..validation import ValidationError
from .concurrency import ConflictRetryExhausted, insert_with_conflict_retry

T = TypeVar("T")

"""
Invoice Numbering Invariants

- Format: PREFIX-YEAR-NN (NN zero-padded, default width 2; widens past 99).
- The next number is 1 + the highest numeric suffix already used for
  PREFIX-YEAR across every invoice-bearing table.
- Allocation is read-then-write, so two writers can compute the same
  candidate. The UNIQUE constraint on invoice_number detects that, and
  insert_with_invoice_number() retries with a new candidate:
    attempt 0           -> fresh allocation
    attempts 1..N-1     -> re-read max and increment past the last candidate
    attempts >= FALLBACK -> same, plus a -TTTT suffix from the current time
- Exhausting the attempt budget raises InvoiceAllocationError. A non-unique
  or malformed number is never produced.
"""

INVOICE_MODELS = (Sale, EmployeeSale)

# Attempt index from which candidates get a time-derived suffix
FALLBACK_AFTER_ATTEMPTS = 3

_PREFIX_RE = re.compile(r"^[A-Z][A-Z0-9]{0,15}$")

# Rows fetched per round trip while skipping numbers that do not parse
_SCAN_BATCH = 20


class InvoiceAllocationError(Exception):
    """Raised when no unique invoice number could be inserted."""

    def __init__(self, message: str, *, prefix: str, year: int, candidates: list[str] | None = None):
        super().__init__(message)
        self.prefix = prefix
        self.year = year
        self.candidates = candidates or []


def _validate_scope(prefix: str, year: int) -> tuple[str, int]:
    if not isinstance(prefix, str) or not _PREFIX_RE.match(prefix.strip().upper()):
        raise ValidationError("prefix must be 1-16 letters/digits starting with a letter")
    if isinstance(year, bool) or not isinstance(year, int) or not (1900 <= year <= 9999):
        raise ValidationError("year must be a four-digit integer")
    return prefix.strip().upper(), year


def _head(prefix: str, year: int) -> str:
    return f"{prefix}-{year}-"


def _parse_sequence(invoice_number: str, head: str) -> int | None:
    """
    Numeric part of 'HEAD-NN' or 'HEAD-NN-TTTT'; None when not ours.
    """
    if not invoice_number.startswith(head):
        return None
    digits = invoice_number[len(head):].split("-", 1)[0]
    if not digits.isdigit():
        return None
    return int(digits)


def _highest_in(model, head: str, *, suffixed: bool) -> int:
    """
    Highest sequence in one table, found by the database.

    Numbers of one shape order numerically by (length, value), so the first
    row that parses is the maximum. Suffixed numbers (HEAD-NN-TTTT) are
    ordered separately because their suffix would otherwise dominate the
    length.
    """
    column = model.invoice_number
    suffix_filter = column.like(f"{head}%-%")
    q = db.session.query(column).filter(
        column.like(f"{head}%"),
        suffix_filter if suffixed else ~suffix_filter,
    ).order_by(func.length(column).desc(), column.desc())

    offset = 0
    while True:
        rows = q.limit(_SCAN_BATCH).offset(offset).all()
        for (number,) in rows:
            seq = _parse_sequence(number, head)
            if seq is not None:
                return seq
        if len(rows) < _SCAN_BATCH:
            return 0
        offset += _SCAN_BATCH


def current_max_sequence(prefix: str, year: int) -> int:
    """Highest numeric suffix already used for PREFIX-YEAR (0 if none)."""
    prefix, year = _validate_scope(prefix, year)
    head = _head(prefix, year)
    return max(
        _highest_in(model, head, suffixed=suffixed)
        for model in INVOICE_MODELS
        for suffixed in (False, True)
    )


def format_invoice_number(prefix: str, year: int, sequence: int, *, pad: int | None = None) -> str:
    pad = pad if pad is not None else int(current_app.config.get("INVOICE_PAD", 2))
    return f"{prefix}-{year}-{sequence:0{pad}d}"


def allocate_invoice_number(prefix: str, year: int) -> str:
    """
    Next candidate invoice number for PREFIX-YEAR.

    Read-only: the number is not reserved. Insert the row through
    insert_with_invoice_number() to get the uniqueness guarantee.
    """
    prefix, year = _validate_scope(prefix, year)
    return format_invoice_number(prefix, year, current_max_sequence(prefix, year) + 1)


def peek_next_invoice_number(prefix: str, year: int) -> dict:
    candidate = allocate_invoice_number(prefix, year)
    return {"prefix": prefix.strip().upper(), "year": year, "next_invoice_number": candidate}


def _time_suffix() -> str:
    return f"{int(time.time() * 1000) % 10000:04d}"


def _candidate_factory(prefix: str, year: int) -> Callable[[int, str | None], str]:
    head = _head(prefix, year)

    def _next(attempt: int, previous: str | None) -> str:
        sequence = current_max_sequence(prefix, year) + 1
        if previous is not None:
            previous_seq = _parse_sequence(previous, head) or 0
            sequence = max(sequence, previous_seq + 1)
        candidate = format_invoice_number(prefix, year, sequence)
        if attempt >= FALLBACK_AFTER_ATTEMPTS:
            candidate = f"{candidate}-{_time_suffix()}"
        return candidate

    return _next


def insert_with_invoice_number(
    prefix: str,
    year: int,
    build: Callable[[str], T],
    *,
    max_attempts: int | None = None,
) -> T:
    """
    Allocate an invoice number and commit build(invoice_number) with it.

    build() must stage the complete unit of work (header, lines and any
    dependent updates); it is re-run on every attempt after a rollback.
    """
    prefix, year = _validate_scope(prefix, year)
    attempts = max_attempts or int(current_app.config.get("INVOICE_MAX_ATTEMPTS", 5))
    if attempts < 1:
        raise ValidationError("max_attempts must be >= 1")

    try:
        return insert_with_conflict_retry(
            build,
            _candidate_factory(prefix, year),
            attempts=attempts,
            conflict_markers=("invoice_number", "uq_sales_invoice_number", "uq_employee_sales_invoice_number"),
        )
    except ConflictRetryExhausted as exc:
        raise InvoiceAllocationError(
            f"could not allocate a unique {prefix}-{year} invoice number after {attempts} attempts",
            prefix=prefix,
            year=year,
            candidates=exc.candidates,
        ) from exc

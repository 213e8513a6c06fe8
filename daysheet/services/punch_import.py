"""
Spreadsheet parser for biometric / turnstile punch exports.

Expected columns (case-insensitive, any of the aliases):
  employee / name / full_name / employee name
  timestamp / time / datetime / punch time / date/time
  event / punch / type / status / direction
  device / terminal / source / checkpoint   (optional)
"""

from __future__ import annotations

import logging
from typing import IO

import pandas as pd
from pydantic import ValidationError

from daysheet.schemas.attendance import PunchRecord

logger = logging.getLogger(__name__)

COLUMN_ALIASES: dict[str, list[str]] = {
    "raw_name": [
        "employee", "name", "full_name", "full name", "employee name",
    ],
    "timestamp": [
        "timestamp", "time", "datetime", "punch time", "date/time", "date_time",
    ],
    "event": [
        "event", "punch", "type", "status", "direction", "punch type",
    ],
    "device": [
        "device", "terminal", "source", "checkpoint",
    ],
}

REQUIRED_COLUMNS = ("raw_name", "timestamp", "event")

_ALL_ALIASES: frozenset[str] = frozenset(
    alias for aliases in COLUMN_ALIASES.values() for alias in aliases
)

EVENT_MAP: dict[str, str] = {
    "in": "IN",
    "out": "OUT",
    "check in": "IN",
    "check out": "OUT",
    "check-in": "IN",
    "check-out": "OUT",
    "clock in": "IN",
    "clock out": "OUT",
    "entry": "IN",
    "exit": "OUT",
    # device punch status codes
    "0": "IN",
    "1": "OUT",
}


def _find_header_row(file: IO[bytes]) -> int:
    """
    Scan the first 20 rows for the one with the most column-alias matches.
    Returns the 0-based row index to pass as ``header=`` to ``pd.read_excel``.
    """
    try:
        head = pd.read_excel(file, engine="openpyxl", dtype=str, nrows=20, header=None)
    except Exception as exc:
        logger.debug("Header scan failed: %s", exc)
        return 0
    finally:
        file.seek(0)

    best_row, best_score = 0, 0
    for row_idx, row in head.iterrows():
        score = sum(
            1 for cell in row
            if isinstance(cell, str) and cell.lower().strip() in _ALL_ALIASES
        )
        if score > best_score:
            best_score = score
            best_row = int(row_idx)

    return best_row if best_score >= 2 else 0


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    lower_cols = {str(c).lower().strip(): c for c in df.columns}
    rename_map: dict[str, str] = {}
    for canonical, aliases in COLUMN_ALIASES.items():
        for alias in aliases:
            if alias in lower_cols:
                rename_map[lower_cols[alias]] = canonical
                break
    return df.rename(columns=rename_map)


def _clean_cell(value: object) -> str:
    text = str(value if value is not None else "").strip()
    return "" if text.lower() in ("nan", "none", "nat") else text


def parse_punches(file: IO[bytes]) -> tuple[list[PunchRecord], list[str]]:
    """Parse a punch export and return (valid_records, error_messages)."""
    header_row = _find_header_row(file)

    try:
        df = pd.read_excel(file, engine="openpyxl", dtype=str, header=header_row)
    except Exception as exc:
        return [], [f"Could not open file: {exc}"]

    df = _normalize_columns(df)

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        return [], [f"Missing required columns: {', '.join(missing)}"]

    records: list[PunchRecord] = []
    errors: list[str] = []

    # header_row is 0-based and the header itself takes a row
    data_row_offset = header_row + 2
    skipped_empty = 0
    skipped_header = 0

    for i, row in enumerate(df.itertuples(index=False), start=data_row_offset):
        raw_name = _clean_cell(getattr(row, "raw_name", ""))
        raw_time = _clean_cell(getattr(row, "timestamp", ""))
        raw_event = _clean_cell(getattr(row, "event", ""))
        raw_device = _clean_cell(getattr(row, "device", ""))

        if not raw_name and not raw_time and not raw_event:
            skipped_empty += 1
            continue

        # per-employee sections in some exports repeat the header
        if raw_time.lower() in _ALL_ALIASES:
            skipped_header += 1
            logger.debug("Row %d: repeated header skipped", i)
            continue

        try:
            ts = pd.to_datetime(raw_time)
            if pd.isna(ts):
                raise ValueError("empty or unparseable date")
        except (ValueError, TypeError, OverflowError):
            msg = f"Row {i}: invalid timestamp '{raw_time}'"
            logger.warning("Skipped - %s (name='%s')", msg, raw_name)
            errors.append(msg)
            continue

        event = EVENT_MAP.get(raw_event.lower())
        if event is None:
            msg = f"Row {i}: unknown event '{raw_event}'. Allowed: IN, OUT, check in, check out, entry, exit, 0, 1"
            logger.warning("Skipped - %s (name='%s')", msg, raw_name)
            errors.append(msg)
            continue

        try:
            records.append(
                PunchRecord(
                    raw_name=raw_name,
                    timestamp=ts.to_pydatetime(),
                    event=event,
                    device=raw_device,
                )
            )
        except ValidationError as exc:
            for err in exc.errors():
                msg = f"Row {i}: {err['loc'][0]} - {err['msg']}"
                logger.warning("Skipped - %s", msg)
                errors.append(msg)

    logger.info(
        "Punch export parsed: valid=%d, errors=%d (empty=%d, headers=%d)",
        len(records), len(errors), skipped_empty, skipped_header,
    )
    return records, errors

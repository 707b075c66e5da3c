"""Natural-language and ISO date parsing for search filters."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta

from obsidian_rest.errors import ErrorKind, VaultError

logger = logging.getLogger(__name__)

_UNITS = ("minute", "hour", "day", "week", "month", "year")

_AGO_PATTERN = re.compile(r"^(?P<count>\d+|an?)\s+(?P<unit>[a-z]+?)s?\s+ago$")
_IN_PATTERN = re.compile(r"^in\s+(?P<count>\d+|an?)\s+(?P<unit>[a-z]+?)s?$")
_LAST_PATTERN = re.compile(r"^last\s+(?P<unit>[a-z]+)$")


def _offset(unit: str, count: int) -> relativedelta:
    if unit == "minute":
        return relativedelta(minutes=count)
    if unit == "hour":
        return relativedelta(hours=count)
    if unit == "day":
        return relativedelta(days=count)
    if unit == "week":
        return relativedelta(weeks=count)
    if unit == "month":
        return relativedelta(months=count)
    return relativedelta(years=count)


def _parse_count(raw: str) -> int:
    return 1 if raw in ("a", "an") else int(raw)


def _parse_relative(text: str, now: datetime) -> Optional[datetime]:
    """Handle the relative phrases ``dateutil`` does not understand."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if text == "now":
        return now
    if text == "today":
        return midnight
    if text == "yesterday":
        return midnight - timedelta(days=1)
    if text == "tomorrow":
        return midnight + timedelta(days=1)

    match = _AGO_PATTERN.match(text)
    if match and match.group("unit") in _UNITS:
        return now - _offset(match.group("unit"), _parse_count(match.group("count")))

    match = _IN_PATTERN.match(text)
    if match and match.group("unit") in _UNITS:
        return now + _offset(match.group("unit"), _parse_count(match.group("count")))

    match = _LAST_PATTERN.match(text)
    if match and match.group("unit") in _UNITS:
        return now - _offset(match.group("unit"), 1)

    return None


def parse_date_filter(text: str, field_name: str, now: Optional[datetime] = None) -> datetime:
    """Parse a date filter such as ``"2024-05-01"``, ``"yesterday"`` or ``"3 days ago"``.

    Args:
        text: User supplied date expression.
        field_name: Name of the filter, used in the error message.
        now: Reference time for relative expressions (defaults to the current time).

    Returns:
        The parsed datetime (naive local time unless the string carried an offset).

    Raises:
        VaultError: ``VALIDATION_ERROR`` when nothing parseable was found.
    """
    reference = now or datetime.now()
    cleaned = text.strip().lower()
    if not cleaned:
        raise VaultError(
            ErrorKind.VALIDATION_ERROR,
            f"Invalid date format for {field_name}: value is empty",
            {"field": field_name},
        )

    parsed = _parse_relative(cleaned, reference)
    if parsed is None:
        try:
            parsed = date_parser.parse(
                text.strip(),
                default=reference.replace(hour=0, minute=0, second=0, microsecond=0),
            )
        except (ValueError, OverflowError) as exc:
            logger.info("Could not parse date filter %s=%r", field_name, text)
            raise VaultError(
                ErrorKind.VALIDATION_ERROR,
                f"Invalid date format for {field_name}: '{text}'",
                {"field": field_name, "value": text},
            ) from exc

    logger.debug("Parsed %s=%r as %s", field_name, text, parsed.isoformat())
    return parsed

# Overview: Batch code interpretation (production date, expiry date, expiry status).

"""
Batch code format:
- 4 digits + optional suffix (e.g. 4030, 4030A)
- digit 1: production year offset from BASE_YEAR (4 -> 2024)
- digits 2-4: day of the production year (001-366)
- shelf life: SHELF_LIFE_YEARS after the production date

Example: 4030 -> produced 2024-01-30, expires 2027-01-30.
"""
from __future__ import annotations

from datetime import date, timedelta

from .errors import InvalidBatchCode

BASE_YEAR = 2020
SHELF_LIFE_YEARS = 3

EXPIRY_EXPIRED = "expired"
EXPIRY_WITHIN_30 = "within30"
EXPIRY_WITHIN_90 = "within90"
EXPIRY_NORMAL = "normal"


def _prefix(batch_code: str | None) -> str:
    if not batch_code or len(batch_code) < 4:
        raise InvalidBatchCode(f"Invalid batch code format: {batch_code!r}")
    prefix = batch_code[:4]
    if not (prefix.isascii() and prefix.isdigit()):
        raise InvalidBatchCode(f"First 4 characters of a batch code must be digits: {batch_code!r}")
    return prefix


def parse_production_date(batch_code: str) -> date:
    prefix = _prefix(batch_code)
    year = BASE_YEAR + int(prefix[0])
    day_of_year = int(prefix[1:4])
    if day_of_year < 1 or day_of_year > 366:
        raise InvalidBatchCode(f"Invalid day of year in batch code {batch_code!r}: {day_of_year}")
    # Day 366 of a non-leap year rolls into January 1st of the next year
    return date(year, 1, 1) + timedelta(days=day_of_year - 1)


def compute_expiry_date(production_date: date) -> date:
    target_year = production_date.year + SHELF_LIFE_YEARS
    try:
        return production_date.replace(year=target_year)
    except ValueError:
        # Feb 29 -> Mar 1 when the target year is not a leap year
        return date(target_year, 3, 1)


def validate_batch_code(batch_code: str | None) -> bool:
    try:
        parse_production_date(batch_code)
    except InvalidBatchCode:
        return False
    return True


def derive_dates(batch_code: str | None) -> tuple[date | None, date | None]:
    """(production_date, expiry_date) for a well-formed code, (None, None) otherwise."""
    if not validate_batch_code(batch_code):
        return None, None
    production = parse_production_date(batch_code)
    return production, compute_expiry_date(production)


def days_until_expiry(expiry_date: date, today: date) -> int:
    return (expiry_date - today).days


def expiry_status(expiry_date: date, today: date) -> str:
    days = days_until_expiry(expiry_date, today)
    if days < 0:
        return EXPIRY_EXPIRED
    if days <= 30:
        return EXPIRY_WITHIN_30
    if days <= 90:
        return EXPIRY_WITHIN_90
    return EXPIRY_NORMAL


def batch_year(batch_code: str) -> int:
    """Nominal production year encoded in the code (day 366 does not roll over)."""
    parse_production_date(batch_code)
    return BASE_YEAR + int(batch_code[0])


def batch_day_of_year(batch_code: str) -> int:
    parse_production_date(batch_code)
    return int(batch_code[1:4])


def generate_batch_code(production_date: date, suffix: str | None = None) -> str:
    year_digit = production_date.year % 10
    day_of_year = production_date.timetuple().tm_yday
    code = f"{year_digit}{day_of_year:03d}"
    return f"{code}{suffix}" if suffix else code

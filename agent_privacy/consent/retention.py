"""
Retention period parsing

Specifiers look like "30_days", "6_months" or "1_year". Months and
years are fixed day counts (30 and 365 by default) so expiry dates are
deterministic. Indefinite or unrecognised specifiers mean no expiry.
"""

import re
from datetime import datetime, timedelta
from typing import Optional

import structlog

from ..config import PrivacyConfig, get_privacy_config
from ..constants import RetentionDefaults

logger = structlog.get_logger(__name__)

RETENTION_PATTERN = re.compile(r"^\s*(\d+)\s*[_\s-]?\s*(day|week|month|year)s?\s*$", re.IGNORECASE)


def parse_retention_period(period: Optional[str],
                           config: Optional[PrivacyConfig] = None) -> Optional[timedelta]:
    """Convert a retention specifier into a duration, or None for no expiry"""
    if period is None or period.strip().lower() in RetentionDefaults.INDEFINITE_MARKERS:
        return None
    
    match = RETENTION_PATTERN.match(period)
    if not match:
        logger.warning("Unrecognized retention period, treating as indefinite", retention_period=period)
        return None
    
    config = config or get_privacy_config()
    amount = int(match.group(1))
    unit = match.group(2).lower()
    
    if unit == "day":
        days = amount
    elif unit == "week":
        days = amount * RetentionDefaults.DAYS_PER_WEEK
    elif unit == "month":
        days = amount * config.days_per_month
    else:
        days = amount * config.days_per_year
    
    return timedelta(days=days)


def compute_expiry(start: datetime, period: Optional[str],
                   config: Optional[PrivacyConfig] = None) -> Optional[datetime]:
    """Expiry date for a grant made at `start`"""
    duration = parse_retention_period(period, config)
    if duration is None:
        return None
    return start + duration

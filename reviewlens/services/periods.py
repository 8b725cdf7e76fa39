"""Quarter helpers used to scope manifests and review fetches."""

import re
from datetime import date, timedelta
from typing import Tuple

from reviewlens.core.errors import InvalidInputError

_QUARTER_RE = re.compile(r"^(\d{4})[-\s]?Q([1-4])$", re.IGNORECASE)


def normalize_quarter(value: str) -> str:
    """Accept ``2025Q3``, ``2025-Q3`` or ``2025 q3`` and return ``2025Q3``."""

    if not isinstance(value, str):
        raise InvalidInputError("`quarter` must be a string like 2025Q3")
    match = _QUARTER_RE.match(value.strip())
    if not match:
        raise InvalidInputError(f"Invalid quarter format: {value!r} (expected e.g. 2025Q3)")
    return f"{int(match.group(1))}Q{int(match.group(2))}"


def quarter_range(quarter: str) -> Tuple[date, date]:
    """Return the first and last calendar day of ``quarter``."""

    normalized = normalize_quarter(quarter)
    year, part = int(normalized[:4]), int(normalized[-1])
    start = date(year, (part - 1) * 3 + 1, 1)
    if part == 4:
        end = date(year, 12, 31)
    else:
        end = date(year, part * 3 + 1, 1) - timedelta(days=1)
    return start, end


def previous_quarter(quarter: str) -> str:
    normalized = normalize_quarter(quarter)
    year, part = int(normalized[:4]), int(normalized[-1])
    if part == 1:
        return f"{year - 1}Q4"
    return f"{year}Q{part - 1}"

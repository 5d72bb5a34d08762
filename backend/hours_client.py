"""
Analytics service client - actual worked hours per employee for a period.

GET {ANALYTICS_URL}/api/employee-hours?year=&month=&names=...&employee_ids=...
→ [{"employee_id": "...", "employee_name": "...", "hours": 162.5}, ...]

The payroll sheet must stay usable when analytics is down: every failure
is logged and turns into an empty result, which leaves hours at 0.
"""

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Dict, List, Optional

from .config import settings

logger = logging.getLogger(__name__)


def _build_url(names: List[str], year: int, month: int, employee_ids: Optional[List[str]]) -> str:
    params = [("year", year), ("month", month)]
    params.extend(("names", n) for n in names)
    params.extend(("employee_ids", e) for e in employee_ids or [])
    base = settings.ANALYTICS_URL.rstrip("/")
    return f"{base}/api/employee-hours?{urllib.parse.urlencode(params)}"


def get_employee_hours(
    names: List[str],
    year: int,
    month: int,
    employee_ids: Optional[List[str]] = None,
) -> List[Dict]:
    """
    Returns [{employee_id?, employee_name, hours}] for the requested employees.
    Empty list when analytics is not configured or unreachable.
    """
    if not names and not employee_ids:
        return []
    if not settings.ANALYTICS_URL:
        logger.info("No ANALYTICS_URL - skipping worked-hours lookup")
        return []

    url = _build_url(names, year, month, employee_ids)
    req = urllib.request.Request(url, headers={"Accept": "application/json"}, method="GET")
    try:
        with urllib.request.urlopen(req, timeout=settings.ANALYTICS_TIMEOUT_SECONDS) as response:
            payload = json.loads(response.read())
    except (urllib.error.URLError, TimeoutError, ValueError) as e:
        logger.warning("Analytics hours lookup failed for %d/%d: %s", month, year, e)
        return []

    if not isinstance(payload, list):
        logger.warning("Analytics hours lookup returned %s, expected a list", type(payload).__name__)
        return []
    return [entry for entry in payload if isinstance(entry, dict)]


def get_hours_for_employee(employee_name: str, year: int, month: int) -> float:
    """Total hours for one employee by name, 0.0 when unknown."""
    for entry in get_employee_hours([employee_name], year, month):
        if str(entry.get("employee_name", "")).strip() == employee_name.strip():
            try:
                return max(0.0, float(entry.get("hours") or 0))
            except (TypeError, ValueError):
                return 0.0
    return 0.0

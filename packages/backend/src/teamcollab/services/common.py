"""Query helpers shared by the todo, task and admin services."""

import math
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import or_

from teamcollab.db.models import as_utc, utcnow


def start_of_week(now: Optional[datetime] = None) -> datetime:
    """Most recent Sunday 00:00 UTC."""
    now = as_utc(now) if now else utcnow()
    days_since_sunday = (now.weekday() + 1) % 7
    day = now - timedelta(days=days_since_sunday)
    return day.replace(hour=0, minute=0, second=0, microsecond=0)


def date_window(model, date_from: Optional[datetime], date_to: Optional[datetime]) -> list:
    """Conditions for rows whose start or due date falls on the right side of
    each bound. Each bound is checked independently."""
    conditions = []
    if date_from:
        date_from = as_utc(date_from)
        conditions.append(
            or_(model.start_date >= date_from, model.due_date >= date_from)
        )
    if date_to:
        date_to = as_utc(date_to)
        conditions.append(
            or_(model.start_date <= date_to, model.due_date <= date_to)
        )
    return conditions


def offset_pagination(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": total > offset + limit,
    }


def page_pagination(total: int, page: int, limit: int, returned: int) -> dict:
    offset = (page - 1) * limit
    return {
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
        "total_count": total,
        "has_next": offset + returned < total,
        "has_prev": page > 1,
    }

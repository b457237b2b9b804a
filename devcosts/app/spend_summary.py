"""Dashboard aggregates: month totals, month-end projection and the daily series."""

import calendar
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Tuple

from sqlalchemy.orm import Session

from . import models, schemas
from .usage_sync.providers.pricing import round_cents
from .usage_sync.usage_store import UsageRecordStore

DAILY_SERIES_DAYS = 30


def previous_month_bounds(today: date) -> Tuple[date, date]:
    last_day = today.replace(day=1) - timedelta(days=1)
    return last_day.replace(day=1), last_day


def project_month_end(current_cents: int, today: date) -> int:
    """Linear extrapolation of month-to-date spend to the last day of the month."""
    days_in_month = calendar.monthrange(today.year, today.month)[1]
    return round_cents(Decimal(current_cents) / today.day * days_in_month)


def change_percent(current: int, previous: int) -> int:
    if previous <= 0:
        return 0
    return round_cents(Decimal(current - previous) / previous * 100)


def build_dashboard(db: Session, user_id: int, today: date) -> schemas.Dashboard:
    month_start = today.replace(day=1)
    prev_start, prev_end = previous_month_bounds(today)

    current_total = UsageRecordStore.sum_spend(db, user_id, month_start, today)
    previous_total = UsageRecordStore.sum_spend(db, user_id, prev_start, prev_end)

    current_by_conn = UsageRecordStore.totals_by_connection(db, user_id, month_start, today)
    previous_by_conn = UsageRecordStore.totals_by_connection(db, user_id, prev_start, prev_end)

    connections = db.query(models.Connection).filter(
        models.Connection.user_id == user_id
    ).order_by(models.Connection.created_at, models.Connection.id).all()

    connection_stats = []
    for conn in connections:
        current = current_by_conn.get(conn.id, 0)
        previous = previous_by_conn.get(conn.id, 0)
        connection_stats.append(schemas.ConnectionSpend(
            connection_id=conn.id,
            provider=conn.provider,
            is_active=conn.is_active,
            last_synced_at=conn.last_synced_at,
            last_error=conn.last_error,
            current_month_cents=current,
            previous_month_cents=previous,
            change_percent=change_percent(current, previous)
        ))

    series_start = today - timedelta(days=DAILY_SERIES_DAYS - 1)
    by_day = defaultdict(dict)
    for day, provider, cents in UsageRecordStore.daily_totals(db, user_id, series_start, today):
        by_day[day][provider] = by_day[day].get(provider, 0) + cents

    daily = []
    for offset in range(DAILY_SERIES_DAYS):
        day = series_start + timedelta(days=offset)
        by_provider = by_day.get(day, {})
        daily.append(schemas.DailySpend(
            day=day,
            total_cents=sum(by_provider.values()),
            by_provider=by_provider
        ))

    return schemas.Dashboard(
        current_month_cents=current_total,
        previous_month_cents=previous_total,
        projected_month_cents=project_month_end(current_total, today),
        connections=connection_stats,
        daily=daily
    )

"""
Usage Record Store

Idempotent persistence and aggregation of normalized daily usage.

Records are keyed by (connection, date). Writing a day that already exists
replaces its amount instead of adding a second row or summing, so syncing
the same window twice leaves the table unchanged. Upserts are atomic in the
database (ON CONFLICT DO UPDATE), supported on SQLite and PostgreSQL.
"""

import json
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from devcosts.app.models import Connection, UsageRecord
from .providers.base import UsageData

# Columns a re-synced day overwrites; user and provider follow the connection
UPSERT_COLUMNS = ("amount_cents", "currency", "raw_data")


class UsageRecordStore:
    """
    Read/write access to the usage_records table.

    Only the sync service writes through this class. The alert evaluator and
    the dashboard use the aggregate helpers.
    """

    @staticmethod
    def upsert_day(db: Session, connection: Connection, usage: UsageData) -> None:
        """
        Insert or overwrite the record for one (connection, date).

        Runs a single INSERT ... ON CONFLICT DO UPDATE on the
        (connection_id, date) key, so two syncs of the same connection
        writing the same day never collide; whichever commits last wins.
        Does not commit; the caller owns the transaction.

        Args:
            db: Database session
            connection: Connection the usage belongs to
            usage: Normalized day of usage from an adapter

        Example:
            >>> UsageRecordStore.upsert_day(db, conn, UsageData(date(2024, 3, 1), 250))
            >>> UsageRecordStore.upsert_day(db, conn, UsageData(date(2024, 3, 1), 300))
            >>> # One row for 2024-03-01, amount_cents == 300
        """
        raw_data = json.dumps(usage.raw_data, default=str) if usage.raw_data is not None else None

        values = {
            "connection_id": connection.id,
            "user_id": connection.user_id,
            "provider": connection.provider,
            "date": usage.date,
            "amount_cents": usage.amount_cents,
            "currency": usage.currency,
            "raw_data": raw_data,
        }

        dialect_name = db.get_bind().dialect.name
        if dialect_name == "postgresql":
            stmt = postgresql_insert(UsageRecord).values(**values)
        elif dialect_name == "sqlite":
            stmt = sqlite_insert(UsageRecord).values(**values)
        else:
            raise NotImplementedError(f"Usage upsert is not supported on {dialect_name}")

        stmt = stmt.on_conflict_do_update(
            index_elements=["connection_id", "date"],
            set_={col: getattr(stmt.excluded, col) for col in UPSERT_COLUMNS},
        )
        db.execute(stmt)

    @staticmethod
    def _filtered(query, user_id: int, start: date, end: Optional[date], provider: Optional[str],
                  connection_id: Optional[int] = None):
        query = query.filter(UsageRecord.user_id == user_id, UsageRecord.date >= start)
        if end is not None:
            query = query.filter(UsageRecord.date <= end)
        if provider is not None:
            query = query.filter(UsageRecord.provider == provider)
        if connection_id is not None:
            query = query.filter(UsageRecord.connection_id == connection_id)
        return query

    @staticmethod
    def sum_spend(
        db: Session,
        user_id: int,
        start: date,
        end: Optional[date] = None,
        provider: Optional[str] = None,
        connection_id: Optional[int] = None
    ) -> int:
        """
        Total cents for a user between start and end (both inclusive).

        Args:
            end: Last day to include; open-ended when None
            provider: Restrict to one provider identifier
            connection_id: Restrict to one connection
        """
        query = db.query(func.coalesce(func.sum(UsageRecord.amount_cents), 0))
        query = UsageRecordStore._filtered(query, user_id, start, end, provider, connection_id)
        return int(query.scalar() or 0)

    @staticmethod
    def daily_totals(
        db: Session,
        user_id: int,
        start: date,
        end: Optional[date] = None
    ) -> List[Tuple[date, str, int]]:
        """Per-day, per-provider totals as (date, provider, cents), oldest first."""
        query = db.query(
            UsageRecord.date,
            UsageRecord.provider,
            func.sum(UsageRecord.amount_cents)
        )
        query = UsageRecordStore._filtered(query, user_id, start, end, None)
        rows = query.group_by(UsageRecord.date, UsageRecord.provider).order_by(UsageRecord.date).all()
        return [(row[0], row[1], int(row[2] or 0)) for row in rows]

    @staticmethod
    def totals_by_connection(
        db: Session,
        user_id: int,
        start: date,
        end: Optional[date] = None
    ) -> Dict[int, int]:
        """Total cents per connection id in the window."""
        query = db.query(UsageRecord.connection_id, func.sum(UsageRecord.amount_cents))
        query = UsageRecordStore._filtered(query, user_id, start, end, None)
        rows = query.group_by(UsageRecord.connection_id).all()
        return {row[0]: int(row[1] or 0) for row in rows}

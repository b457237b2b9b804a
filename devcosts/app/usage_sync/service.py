"""
Usage Sync Service

Main orchestration service that handles:
- Loading a connection and resolving its provider adapter
- Decrypting credentials
- Fetching usage over a trailing window
- Upserting one record per (connection, day)
- Recording connection health (last_error, last_synced_at)
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from devcosts.app.clock import utcnow, utc_today
from devcosts.app.models import Connection

from .encryption import CredentialVault, CorruptCiphertext
from .registry import ProviderRegistry, UnknownProvider
from .usage_store import UsageRecordStore


logger = logging.getLogger(__name__)

DECRYPT_FAILED = "Failed to decrypt credentials"


class ConnectionNotFound(LookupError):
    """Raised when a connection does not exist or belongs to another user."""

    def __init__(self, connection_id: int):
        super().__init__(f"Connection {connection_id} not found")
        self.connection_id = connection_id


@dataclass
class SyncResult:
    success: bool
    records_count: int = 0
    error: Optional[str] = None


@dataclass
class BatchSyncSummary:
    success: int = 0
    failed: int = 0
    errors: List[str] = field(default_factory=list)


class UsageSyncService:
    """
    Sync usage for one connection or for every active connection.

    Each connection's day upserts and its health update are committed
    together. When anything fails the session is rolled back first, then
    the error is recorded on the connection in a fresh commit, so a
    connection never ends up with half of a sync applied.
    """

    def __init__(
        self,
        db: Session,
        vault: CredentialVault,
        registry: ProviderRegistry,
        manual_days: int = 30,
        scheduled_days: int = 7
    ):
        """
        Initialize service with its collaborators.

        Args:
            db: SQLAlchemy database session
            vault: Credential vault used to decrypt stored credentials
            registry: Provider registry used to resolve adapters
            manual_days: Trailing window for on-demand sync
            scheduled_days: Trailing window for the scheduled batch
        """
        self.db = db
        self.vault = vault
        self.registry = registry
        self.manual_days = manual_days
        self.scheduled_days = scheduled_days

    async def sync_connection(
        self,
        connection_id: int,
        user_id: Optional[int] = None,
        days: Optional[int] = None
    ) -> SyncResult:
        """
        Sync one connection.

        Args:
            connection_id: Connection to sync
            user_id: Owner making the request; None for scheduled runs
            days: Trailing window length (default: manual window)

        Returns:
            SyncResult with the number of days written

        Raises:
            ConnectionNotFound: If absent or not owned by user_id
            UnknownProvider: If the connection's provider is not registered

        Example:
            >>> result = await service.sync_connection(12, user_id=current_user.id)
            >>> print(f"Synced {result.records_count} days")
        """
        query = self.db.query(Connection).filter(Connection.id == connection_id)
        if user_id is not None:
            query = query.filter(Connection.user_id == user_id)
        connection = query.first()
        if not connection:
            raise ConnectionNotFound(connection_id)

        adapter = self.registry.resolve(connection.provider)
        return await self._sync(connection, adapter, days or self.manual_days)

    async def _sync(self, connection: Connection, adapter, days: int) -> SyncResult:
        try:
            credentials = self.vault.decrypt_credentials(connection.credentials)
        except CorruptCiphertext:
            logger.error(f"Connection {connection.id} ({connection.provider}): could not decrypt credentials")
            connection.last_error = DECRYPT_FAILED
            self.db.commit()
            return SyncResult(success=False, error=DECRYPT_FAILED)

        end_date = utc_today()
        start_date = end_date - timedelta(days=days)
        logger.info(f"Syncing connection {connection.id} ({connection.provider}) from {start_date} to {end_date}")

        try:
            usage = await adapter.fetch_usage(credentials, start_date, end_date)
        except Exception as e:
            error_msg = str(e) or "Failed to fetch usage"
            logger.error(f"Connection {connection.id} ({connection.provider}): fetch failed: {type(e).__name__}")
            return self._record_failure(connection, error_msg)

        # Adapters return a UsageResult; a plain list of days carries no error
        reported_error = getattr(usage, "error", None)

        try:
            for day in usage:
                UsageRecordStore.upsert_day(self.db, connection, day)

            connection.last_error = reported_error
            connection.last_synced_at = utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error(f"Connection {connection.id} ({connection.provider}): storing usage failed: {type(e).__name__}")
            return self._record_failure(connection, "Failed to store usage data")

        if reported_error:
            return SyncResult(success=False, records_count=len(usage), error=reported_error)

        logger.info(f"Synced {connection.provider} connection {connection.id} ({len(usage)} records)")
        return SyncResult(success=True, records_count=len(usage))

    def _record_failure(self, connection: Connection, error_msg: str) -> SyncResult:
        connection.last_error = error_msg
        connection.last_synced_at = utcnow()
        self.db.commit()
        return SyncResult(success=False, error=error_msg)

    async def sync_all(self) -> BatchSyncSummary:
        """
        Sync every active connection over the scheduled window.

        A failure on one connection is counted and recorded but never stops
        the remaining connections from syncing.

        Returns:
            BatchSyncSummary with success/failed counts and error messages
        """
        connections = self.db.query(Connection).filter(Connection.is_active == True).all()
        logger.info(f"Syncing {len(connections)} connections")

        summary = BatchSyncSummary()

        for connection in connections:
            connection_id = connection.id
            provider = connection.provider
            try:
                adapter = self.registry.resolve(provider)
                result = await self._sync(connection, adapter, self.scheduled_days)
            except UnknownProvider as e:
                logger.error(f"Connection {connection_id}: {e}")
                summary.failed += 1
                summary.errors.append(str(e))
                continue
            except Exception as e:
                self.db.rollback()
                logger.exception(f"Unexpected error syncing connection {connection_id}")
                summary.failed += 1
                summary.errors.append(f"Connection {connection_id}: {type(e).__name__}")
                continue

            if result.success:
                summary.success += 1
            else:
                summary.failed += 1
                summary.errors.append(f"{provider} (connection {connection_id}): {result.error}")

        logger.info(f"Sync complete. Success: {summary.success}, Failed: {summary.failed}")
        return summary

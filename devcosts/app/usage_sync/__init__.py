"""
Usage Sync Module

Fetches billing/usage data from third-party APIs, normalizes it into daily
cost records and keeps per-connection health up to date.
"""

from .service import UsageSyncService, SyncResult, BatchSyncSummary, ConnectionNotFound
from .encryption import CredentialVault, ConfigurationError, CorruptCiphertext
from .registry import ProviderRegistry, UnknownProvider, build_registry
from .usage_store import UsageRecordStore

__all__ = [
    'UsageSyncService', 'SyncResult', 'BatchSyncSummary', 'ConnectionNotFound',
    'CredentialVault', 'ConfigurationError', 'CorruptCiphertext',
    'ProviderRegistry', 'UnknownProvider', 'build_registry',
    'UsageRecordStore'
]

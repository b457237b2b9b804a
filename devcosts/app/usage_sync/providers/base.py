"""
Abstract base class for usage providers

Defines the common contract that every billing/usage API adapter implements.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, List, Optional
from datetime import date, datetime, time, timedelta, UTC
import logging

import httpx


logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
DEFAULT_TIMEOUT = 30.0
MAX_PAGES = 100

# Transport failures plus malformed payloads (bad JSON, unexpected shapes)
FETCH_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


@dataclass(frozen=True)
class CredentialField:
    """Describes one credential input the UI must collect for a provider."""
    name: str
    label: str
    type: str = "password"  # text | password | textarea
    required: bool = True
    placeholder: Optional[str] = None
    help_text: Optional[str] = None


@dataclass
class UsageData:
    """One day of normalized spend returned by an adapter."""
    date: date
    amount_cents: int
    currency: str = "USD"
    raw_data: Optional[Any] = None


@dataclass
class ConnectionTestResult:
    success: bool
    error: Optional[str] = None


class UsageResult(list):
    """
    List of UsageData returned by fetch_usage().

    Adapters never raise from fetch_usage(). When the remote call fails they
    return an empty (or partial) result with ``error`` set, and the sync
    service records that message on the connection.
    """

    def __init__(self, records=(), error: Optional[str] = None):
        super().__init__(records)
        self.error = error


class BaseUsageProvider(ABC):
    """
    Abstract base class for usage providers.

    Concrete providers (OpenAI, Anthropic, Vercel, ...) implement
    ``_probe`` and ``fetch_usage``. The HTTP client is built per call with
    a bounded timeout; tests inject an ``httpx.MockTransport``.
    """

    id: str = ""
    name: str = ""
    description: str = ""
    color: str = "#000000"
    credential_fields: List[CredentialField] = []
    is_placeholder: bool = False

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    def missing_credentials(self, credentials: Dict[str, str]) -> List[str]:
        """Return names of required credential fields that are absent or blank."""
        return [
            f.name for f in self.credential_fields
            if f.required and not str(credentials.get(f.name) or "").strip()
        ]

    async def test_connection(self, credentials: Dict[str, str]) -> ConnectionTestResult:
        """
        Make one lightweight authenticated call to the provider.

        Never raises: HTTP 401/403 map to an invalid-credential message and
        every other failure maps to a connection-failed message.

        Args:
            credentials: Decrypted credential object

        Returns:
            ConnectionTestResult
        """
        try:
            async with self._client() as client:
                response = await self._probe(client, credentials)
        except Exception as e:
            logger.warning(f"{self.id}: connection test failed: {type(e).__name__}")
            return ConnectionTestResult(success=False, error=f"Failed to connect to {self.name}")

        if response.is_success:
            return ConnectionTestResult(success=True)

        logger.info(f"{self.id}: connection test returned HTTP {response.status_code}")
        return ConnectionTestResult(success=False, error=self._describe_failure(response))

    def _describe_failure(self, response: httpx.Response) -> str:
        if response.status_code in (401, 403):
            return INVALID_CREDENTIALS
        return "Connection failed"

    @abstractmethod
    async def _probe(
        self,
        client: httpx.AsyncClient,
        credentials: Dict[str, str]
    ) -> httpx.Response:
        """Issue the lightweight request used by test_connection()."""
        pass

    @abstractmethod
    async def fetch_usage(
        self,
        credentials: Dict[str, str],
        start_date: date,
        end_date: date
    ) -> UsageResult:
        """
        Fetch spend for [start_date, end_date] inclusive, one entry per day.

        Args:
            credentials: Decrypted credential object
            start_date: First calendar day (UTC)
            end_date: Last calendar day (UTC)

        Returns:
            UsageResult of UsageData, at most one per date. Empty with
            ``error`` set when the provider could not be reached.
        """
        pass

    def _failed(self, message: str, records=()) -> UsageResult:
        logger.warning(f"{self.id}: {message}")
        return UsageResult(records, error=message)

    def _http_error(self, response: httpx.Response) -> str:
        if response.status_code in (401, 403):
            return f"{self.name} rejected the credentials (HTTP {response.status_code})"
        if response.status_code == 429:
            return f"{self.name} rate limit exceeded (HTTP 429)"
        return f"{self.name} usage request failed (HTTP {response.status_code})"

    def _exception_error(self, error: Exception) -> str:
        if isinstance(error, httpx.TimeoutException):
            return f"{self.name} request timed out after {self.timeout:g}s"
        if isinstance(error, httpx.HTTPError):
            return f"Failed to reach {self.name}: {type(error).__name__}"
        return f"Unexpected {self.name} usage response: {type(error).__name__}"

    @staticmethod
    def _window_timestamps(start_date: date, end_date: date):
        """Unix seconds covering start_date 00:00 UTC up to end_date 24:00 UTC."""
        start = datetime.combine(start_date, time.min, tzinfo=UTC)
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC)
        return int(start.timestamp()), int(end.timestamp())

    @staticmethod
    def _day_from_timestamp(seconds) -> date:
        return datetime.fromtimestamp(int(seconds), tz=UTC).date()

    @staticmethod
    def _parse_day(value) -> Optional[date]:
        """Parse 'YYYY-MM-DD' or an ISO timestamp into a date."""
        if not value:
            return None
        try:
            return date.fromisoformat(str(value)[:10])
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _collect(
        daily_totals: Dict[date, int],
        start_date: date,
        end_date: date,
        raw_by_day: Optional[Dict[date, Any]] = None
    ) -> List[UsageData]:
        """Turn per-day totals into UsageData, dropping days outside the window."""
        records = []
        for day in sorted(daily_totals):
            if day < start_date or day > end_date:
                continue
            raw = raw_by_day.get(day) if raw_by_day else None
            records.append(UsageData(date=day, amount_cents=daily_totals[day], raw_data=raw))
        return records

    def describe(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "color": self.color,
            "active": not self.is_placeholder,
            "credential_fields": [
                {
                    "name": f.name,
                    "label": f.label,
                    "type": f.type,
                    "required": f.required,
                    "placeholder": f.placeholder,
                    "help_text": f.help_text,
                }
                for f in self.credential_fields
            ],
        }


class PlaceholderProvider(BaseUsageProvider):
    """
    A provider that is registered but not implemented yet.

    test_connection() always fails and fetch_usage() always returns an
    empty result, so the registry can list it like any other adapter.
    """

    is_placeholder = True

    def __init__(
        self,
        provider_id: str,
        name: str,
        description: str,
        color: str,
        credential_fields: List[CredentialField]
    ):
        super().__init__()
        self.id = provider_id
        self.name = name
        self.description = description
        self.color = color
        self.credential_fields = credential_fields

    async def test_connection(self, credentials: Dict[str, str]) -> ConnectionTestResult:
        return ConnectionTestResult(success=False, error="Not implemented yet")

    async def _probe(self, client, credentials):
        raise NotImplementedError(f"{self.name} is not implemented yet")

    async def fetch_usage(self, credentials, start_date, end_date) -> UsageResult:
        return UsageResult()

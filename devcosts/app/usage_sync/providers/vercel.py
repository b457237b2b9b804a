"""
Vercel Provider Implementation

Vercel reports cumulative usage for the requested window rather than a
daily series, so the window's billable overage is attributed to the last
day of the window. Re-syncing overwrites that day with the latest figure.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Any

import httpx

from .base import BaseUsageProvider, CredentialField, UsageData, UsageResult, FETCH_ERRORS
from .pricing import round_cents


logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.vercel.com"
BYTES_PER_GB = Decimal(1024 ** 3)

# Pro plan overage pricing (approximate)
BANDWIDTH_FREE_GB = Decimal(100)
BANDWIDTH_CENTS_PER_GB = Decimal(15)
INVOCATIONS_FREE = 100_000
INVOCATION_CENTS_PER_MILLION = Decimal(60)


class VercelProvider(BaseUsageProvider):
    id = "vercel"
    name = "Vercel"
    description = "Vercel hosting and serverless functions"
    color = "#000000"
    credential_fields = [
        CredentialField(
            name="apiToken",
            label="API Token",
            type="password",
            placeholder="Your Vercel API token",
            help_text="Get your token from vercel.com/account/tokens",
        ),
        CredentialField(
            name="teamId",
            label="Team ID (optional)",
            type="text",
            required=False,
            placeholder="team_...",
            help_text="Required for team accounts",
        ),
    ]

    def _headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credentials.get('apiToken', '')}"}

    def _team_params(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {"teamId": credentials["teamId"]} if credentials.get("teamId") else {}

    async def _probe(self, client: httpx.AsyncClient, credentials: Dict[str, str]) -> httpx.Response:
        return await client.get(
            f"{API_BASE_URL}/v2/user",
            params=self._team_params(credentials),
            headers=self._headers(credentials),
        )

    async def fetch_usage(self, credentials, start_date: date, end_date: date) -> UsageResult:
        start_time, end_time = self._window_timestamps(start_date, end_date)

        # Vercel expects Unix timestamps in milliseconds
        params = self._team_params(credentials)
        params["from"] = str(start_time * 1000)
        params["to"] = str(end_time * 1000)

        try:
            async with self._client() as client:
                response = await client.get(
                    f"{API_BASE_URL}/v1/usage",
                    params=params,
                    headers=self._headers(credentials),
                )
                if not response.is_success:
                    return self._failed(self._http_error(response))
                data = response.json()
                amount_cents = self.overage_cents(data.get("usage") or {})
        except FETCH_ERRORS as e:
            return self._failed(self._exception_error(e))

        if amount_cents <= 0:
            return UsageResult()

        return UsageResult([UsageData(date=end_date, amount_cents=amount_cents, raw_data=data)])

    @staticmethod
    def overage_cents(usage: Dict[str, Any]) -> int:
        """Price bandwidth and function invocations above the free tier."""
        total = 0

        bandwidth_bytes = usage.get("bandwidth") or 0
        if bandwidth_bytes:
            gb_used = Decimal(bandwidth_bytes) / BYTES_PER_GB
            total += round_cents(max(Decimal(0), gb_used - BANDWIDTH_FREE_GB) * BANDWIDTH_CENTS_PER_GB)

        invocations = usage.get("serverlessFunctionInvocations") or 0
        if invocations:
            billable = Decimal(max(0, invocations - INVOCATIONS_FREE))
            total += round_cents(billable / Decimal(1_000_000) * INVOCATION_CENTS_PER_MILLION)

        return total

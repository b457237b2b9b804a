"""
Supabase Provider Implementation

The project usage endpoint returns current totals rather than a daily
series; the estimated cost is attributed to the last day of the window.

Pricing (pay as you go, approximate):
- Storage: $0.021/GB
- Egress: $0.09/GB
- Auth: $0.00325/MAU after 50k
- Edge Functions: $2/million invocations after 500k
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, Any

import httpx

from .base import BaseUsageProvider, CredentialField, UsageData, UsageResult, FETCH_ERRORS
from .pricing import round_cents


logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.supabase.com/v1"
BYTES_PER_GB = Decimal(1024 ** 3)

STORAGE_CENTS_PER_GB = Decimal("2.1")
EGRESS_CENTS_PER_GB = Decimal(9)
AUTH_FREE_MAU = 50_000
AUTH_CENTS_PER_MAU = Decimal("0.325")
FUNCTIONS_FREE_INVOCATIONS = 500_000
FUNCTION_CENTS_PER_MILLION = Decimal(200)


class SupabaseProvider(BaseUsageProvider):
    id = "supabase"
    name = "Supabase"
    description = "Supabase database and auth usage"
    color = "#3ECF8E"
    credential_fields = [
        CredentialField(
            name="accessToken",
            label="Access Token",
            type="password",
            placeholder="sbp_...",
            help_text="Get your token from supabase.com/dashboard/account/tokens",
        ),
        CredentialField(
            name="projectRef",
            label="Project Reference",
            type="text",
            placeholder="your-project-ref",
            help_text="Found in your project URL: supabase.com/dashboard/project/[ref]",
        ),
    ]

    def _headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credentials.get('accessToken', '')}"}

    async def _probe(self, client: httpx.AsyncClient, credentials: Dict[str, str]) -> httpx.Response:
        return await client.get(
            f"{API_BASE_URL}/projects/{credentials.get('projectRef', '')}",
            headers=self._headers(credentials),
        )

    def _describe_failure(self, response: httpx.Response) -> str:
        if response.status_code == 404:
            return "Project not found"
        return super()._describe_failure(response)

    async def fetch_usage(self, credentials, start_date: date, end_date: date) -> UsageResult:
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{API_BASE_URL}/projects/{credentials.get('projectRef', '')}/usage",
                    headers=self._headers(credentials),
                )
                if not response.is_success:
                    return self._failed(self._http_error(response))
                data = response.json() or {}
                amount_cents = self.estimate_cents(data)
        except FETCH_ERRORS as e:
            return self._failed(self._exception_error(e))

        if amount_cents <= 0:
            return UsageResult()

        return UsageResult([UsageData(date=end_date, amount_cents=amount_cents, raw_data=data)])

    @staticmethod
    def estimate_cents(usage: Dict[str, Any]) -> int:
        total = 0

        db_size = usage.get("db_size") or 0
        if db_size:
            total += round_cents(Decimal(db_size) / BYTES_PER_GB * STORAGE_CENTS_PER_GB)

        egress = usage.get("db_egress") or 0
        if egress:
            total += round_cents(Decimal(egress) / BYTES_PER_GB * EGRESS_CENTS_PER_GB)

        auth_users = usage.get("total_auth_users") or 0
        if auth_users > AUTH_FREE_MAU:
            total += round_cents(Decimal(auth_users - AUTH_FREE_MAU) * AUTH_CENTS_PER_MAU)

        invocations = usage.get("total_func_invocations") or 0
        if invocations > FUNCTIONS_FREE_INVOCATIONS:
            billable = Decimal(invocations - FUNCTIONS_FREE_INVOCATIONS)
            total += round_cents(billable / Decimal(1_000_000) * FUNCTION_CENTS_PER_MILLION)

        return total

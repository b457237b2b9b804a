"""
Stripe Provider Implementation

Sums processing fees from balance transactions per UTC day. Fees are
already in minor currency units, so no pricing table is needed.
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Any, List

import httpx

from .base import BaseUsageProvider, CredentialField, UsageResult, FETCH_ERRORS, MAX_PAGES


logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.stripe.com/v1"
PAGE_SIZE = 100


class StripeProvider(BaseUsageProvider):
    id = "stripe"
    name = "Stripe"
    description = "Stripe payment processing fees"
    color = "#635BFF"
    credential_fields = [
        CredentialField(
            name="secretKey",
            label="Secret Key",
            type="password",
            placeholder="sk_live_... or sk_test_...",
            help_text="Get your key from dashboard.stripe.com/apikeys",
        ),
    ]

    def _headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {credentials.get('secretKey', '')}"}

    async def _probe(self, client: httpx.AsyncClient, credentials: Dict[str, str]) -> httpx.Response:
        return await client.get(f"{API_BASE_URL}/balance", headers=self._headers(credentials))

    async def fetch_usage(self, credentials, start_date: date, end_date: date) -> UsageResult:
        start_time, end_time = self._window_timestamps(start_date, end_date)
        params = {
            "created[gte]": start_time,
            "created[lt]": end_time,
            "limit": PAGE_SIZE,
        }

        daily_fees: Dict[date, int] = defaultdict(int)
        fee_counts: Dict[date, int] = defaultdict(int)
        starting_after = None
        page_num = 0

        try:
            async with self._client() as client:
                while True:
                    page_num += 1
                    current_params = dict(params)
                    if starting_after:
                        current_params["starting_after"] = starting_after

                    response = await client.get(
                        f"{API_BASE_URL}/balance_transactions",
                        params=current_params,
                        headers=self._headers(credentials),
                    )
                    if not response.is_success:
                        partial = self._collect(daily_fees, start_date, end_date, self._raw(fee_counts))
                        return self._failed(self._http_error(response), partial)

                    data = response.json()
                    transactions: List[Dict[str, Any]] = data.get("data") or []
                    for transaction in transactions:
                        # Fees may be reported as negative amounts; spend is positive
                        fee = abs(transaction.get("fee") or 0)
                        if fee > 0:
                            day = self._day_from_timestamp(transaction["created"])
                            daily_fees[day] += fee
                            fee_counts[day] += 1

                    if not data.get("has_more") or not transactions:
                        break
                    starting_after = transactions[-1]["id"]

                    if page_num >= MAX_PAGES:
                        logger.warning(f"stripe: reached page limit of {MAX_PAGES}, stopping pagination")
                        break
        except FETCH_ERRORS as e:
            partial = self._collect(daily_fees, start_date, end_date, self._raw(fee_counts))
            return self._failed(self._exception_error(e), partial)

        return UsageResult(self._collect(daily_fees, start_date, end_date, self._raw(fee_counts)))

    @staticmethod
    def _raw(fee_counts: Dict[date, int]) -> Dict[date, Dict[str, int]]:
        return {day: {"fee_transactions": count} for day, count in fee_counts.items()}

"""
OpenAI Provider Implementation

Reads token usage from the organization usage API, grouped by model in
daily buckets, and prices it with OPENAI_PRICING.

Documentation: https://platform.openai.com/docs/api-reference/usage
"""

import logging
from collections import defaultdict
from datetime import date
from typing import Dict, Any, List

import httpx

from .base import BaseUsageProvider, CredentialField, UsageResult, FETCH_ERRORS, MAX_PAGES
from .pricing import OPENAI_PRICING


logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseUsageProvider):
    id = "openai"
    name = "OpenAI"
    description = "GPT-4, DALL-E, Whisper, and more"
    color = "#10A37F"
    credential_fields = [
        CredentialField(
            name="apiKey",
            label="Admin API Key",
            type="password",
            placeholder="sk-admin-...",
            help_text="Create an admin key at platform.openai.com/settings/organization/admin-keys",
        ),
        CredentialField(
            name="organizationId",
            label="Organization ID (optional)",
            type="text",
            required=False,
            placeholder="org-...",
            help_text="Required if you belong to multiple organizations",
        ),
    ]

    def _headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {credentials.get('apiKey', '')}",
            "Content-Type": "application/json",
        }
        if credentials.get("organizationId"):
            headers["OpenAI-Organization"] = credentials["organizationId"]
        return headers

    async def _probe(self, client: httpx.AsyncClient, credentials: Dict[str, str]) -> httpx.Response:
        return await client.get(f"{API_BASE_URL}/models", headers=self._headers(credentials))

    async def fetch_usage(self, credentials, start_date: date, end_date: date) -> UsageResult:
        start_time, end_time = self._window_timestamps(start_date, end_date)
        params = {
            "start_time": start_time,
            "end_time": end_time,
            "bucket_width": "1d",
            "group_by": "model",
            "limit": 31,
        }

        daily_totals: Dict[date, int] = defaultdict(int)
        raw_by_day: Dict[date, List[Dict[str, Any]]] = defaultdict(list)
        next_page = None
        page_num = 0

        try:
            async with self._client() as client:
                while True:
                    page_num += 1
                    current_params = dict(params)
                    if next_page:
                        current_params["page"] = next_page

                    response = await client.get(
                        f"{API_BASE_URL}/organization/usage/completions",
                        params=current_params,
                        headers=self._headers(credentials),
                    )
                    if not response.is_success:
                        partial = self._collect(daily_totals, start_date, end_date, raw_by_day)
                        return self._failed(self._http_error(response), partial)

                    data = response.json()
                    self._accumulate(data, daily_totals, raw_by_day)

                    next_page = data.get("next_page")
                    if not data.get("has_more") or not next_page:
                        break

                    if page_num >= MAX_PAGES:
                        logger.warning(f"openai: reached page limit of {MAX_PAGES}, stopping pagination")
                        break
        except FETCH_ERRORS as e:
            partial = self._collect(daily_totals, start_date, end_date, raw_by_day)
            return self._failed(self._exception_error(e), partial)

        records = self._collect(daily_totals, start_date, end_date, raw_by_day)
        logger.info(f"openai: {len(records)} days of usage across {page_num} page(s)")
        return UsageResult(records)

    def _accumulate(self, data: Dict[str, Any], daily_totals, raw_by_day) -> None:
        """Add one page of daily buckets to the running per-day totals."""
        for bucket in data.get("data") or []:
            day = self._day_from_timestamp(bucket["start_time"])
            for result in bucket.get("results") or []:
                model = result.get("model") or "gpt-4o"
                input_tokens = result.get("input_tokens") or 0
                output_tokens = result.get("output_tokens") or 0
                daily_totals[day] += OPENAI_PRICING.cost_cents(model, input_tokens, output_tokens)
                raw_by_day[day].append({
                    "model": model,
                    "input_tokens": input_tokens,
                    "output_tokens": output_tokens,
                })

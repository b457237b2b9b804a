"""
Anthropic Provider Implementation

Reads message token usage from the Admin API usage report, grouped by
model in daily buckets, and prices it with ANTHROPIC_PRICING. Cache reads
and cache writes are billed at the input rate, so estimates run slightly high.

Documentation: https://docs.anthropic.com/en/api/usage-cost-api
"""

import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta, UTC
from typing import Dict, Any, List

import httpx

from .base import BaseUsageProvider, CredentialField, UsageResult, FETCH_ERRORS, MAX_PAGES
from .pricing import ANTHROPIC_PRICING


logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
USAGE_REPORT_PATH = "/organizations/usage_report/messages"


def _rfc3339(day: date) -> str:
    return datetime.combine(day, time.min, tzinfo=UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


class AnthropicProvider(BaseUsageProvider):
    id = "anthropic"
    name = "Anthropic"
    description = "Claude models for AI assistance"
    color = "#D4A574"
    credential_fields = [
        CredentialField(
            name="apiKey",
            label="Admin API Key",
            type="password",
            placeholder="sk-ant-admin...",
            help_text="Create an admin key at console.anthropic.com/settings/admin-keys",
        ),
    ]

    def _headers(self, credentials: Dict[str, str]) -> Dict[str, str]:
        return {
            "x-api-key": credentials.get("apiKey", ""),
            "anthropic-version": ANTHROPIC_VERSION,
        }

    async def _probe(self, client: httpx.AsyncClient, credentials: Dict[str, str]) -> httpx.Response:
        yesterday = datetime.now(UTC).date() - timedelta(days=1)
        return await client.get(
            f"{API_BASE_URL}{USAGE_REPORT_PATH}",
            params={"starting_at": _rfc3339(yesterday), "bucket_width": "1d", "limit": 1},
            headers=self._headers(credentials),
        )

    async def fetch_usage(self, credentials, start_date: date, end_date: date) -> UsageResult:
        params = {
            "starting_at": _rfc3339(start_date),
            "ending_at": _rfc3339(end_date + timedelta(days=1)),
            "bucket_width": "1d",
            "group_by[]": "model",
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
                        f"{API_BASE_URL}{USAGE_REPORT_PATH}",
                        params=current_params,
                        headers=self._headers(credentials),
                    )
                    if not response.is_success:
                        partial = self._collect(daily_totals, start_date, end_date, raw_by_day)
                        return self._failed(self._http_error(response), partial)

                    data = response.json()
                    for bucket in data.get("data") or []:
                        day = self._parse_day(bucket.get("starting_at"))
                        if day is None:
                            continue
                        for result in bucket.get("results") or []:
                            self._add_result(day, result, daily_totals, raw_by_day)

                    next_page = data.get("next_page")
                    if not data.get("has_more") or not next_page:
                        break

                    if page_num >= MAX_PAGES:
                        logger.warning(f"anthropic: reached page limit of {MAX_PAGES}, stopping pagination")
                        break
        except FETCH_ERRORS as e:
            partial = self._collect(daily_totals, start_date, end_date, raw_by_day)
            return self._failed(self._exception_error(e), partial)

        return UsageResult(self._collect(daily_totals, start_date, end_date, raw_by_day))

    @staticmethod
    def _input_tokens(result: Dict[str, Any]) -> int:
        cache_creation = result.get("cache_creation") or {}
        return (
            (result.get("uncached_input_tokens") or 0)
            + (result.get("cache_read_input_tokens") or 0)
            + sum(v or 0 for v in cache_creation.values())
        )

    def _add_result(self, day: date, result: Dict[str, Any], daily_totals, raw_by_day) -> None:
        model = result.get("model") or "claude-3-5-sonnet"
        input_tokens = self._input_tokens(result)
        output_tokens = result.get("output_tokens") or 0

        daily_totals[day] += ANTHROPIC_PRICING.cost_cents(model, input_tokens, output_tokens)
        raw_by_day[day].append({
            "model": model,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
        })

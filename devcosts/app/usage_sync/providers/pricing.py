"""
Pricing tables for token-billed providers.

Model names are matched against an explicit ordered list of prefixes; the
first matching entry wins, so more specific prefixes must be listed before
shorter ones that overlap them (``gpt-4o-mini`` before ``gpt-4o`` before
``gpt-4``). Unrecognized models fall back to the table's default rate.
Costs are estimates, not invoices.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Sequence, Tuple


ONE_MILLION = Decimal(1_000_000)


def round_cents(value: Decimal) -> int:
    """Round a Decimal amount of cents half up to an int."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class TokenRate:
    """USD price per 1M tokens."""
    input_per_million: Decimal
    output_per_million: Decimal


def rate(input_usd: str, output_usd: str) -> TokenRate:
    return TokenRate(Decimal(input_usd), Decimal(output_usd))


def normalize_model(model: str) -> str:
    """Lowercase and replace dots so 'claude-3.5-sonnet' matches 'claude-3-5-sonnet'."""
    return (model or "").strip().lower().replace(".", "-")


@dataclass(frozen=True)
class PricingTable:
    entries: Tuple[Tuple[str, TokenRate], ...]
    default: TokenRate

    @classmethod
    def build(cls, entries: Sequence[Tuple[str, TokenRate]], default: TokenRate) -> "PricingTable":
        return cls(tuple((normalize_model(p), r) for p, r in entries), default)

    def lookup(self, model: str) -> TokenRate:
        name = normalize_model(model)
        for prefix, token_rate in self.entries:
            if name.startswith(prefix):
                return token_rate
        return self.default

    def cost_cents(self, model: str, input_tokens: int, output_tokens: int) -> int:
        """
        Convert token counts into integer cents, rounding half up.

        Example:
            input $5/1M, output $15/1M, 200k in + 100k out -> 100 + 150 = 250 cents
        """
        token_rate = self.lookup(model)
        dollars = (
            Decimal(input_tokens or 0) / ONE_MILLION * token_rate.input_per_million
            + Decimal(output_tokens or 0) / ONE_MILLION * token_rate.output_per_million
        )
        return round_cents(dollars * 100)


OPENAI_PRICING = PricingTable.build(
    [
        ("gpt-4o-mini", rate("0.15", "0.60")),
        ("gpt-4o", rate("5", "15")),
        # Dated turbo snapshots normalize to the same prefix as gpt-4.1
        ("gpt-4-1106", rate("10", "30")),
        ("gpt-4-0125", rate("10", "30")),
        ("gpt-4.1-mini", rate("0.4", "1.6")),
        ("gpt-4.1-nano", rate("0.1", "0.4")),
        ("gpt-4.1", rate("2", "8")),
        ("gpt-4-turbo", rate("10", "30")),
        ("gpt-4-32k", rate("60", "120")),
        ("gpt-4", rate("30", "60")),
        ("gpt-3-5-turbo", rate("0.5", "1.5")),
        ("text-embedding-3-small", rate("0.02", "0")),
        ("text-embedding-3-large", rate("0.13", "0")),
        ("tts-1-hd", rate("30", "0")),
        ("tts-1", rate("15", "0")),
        # Not token-billed; the rate applies to whatever unit the usage API
        # reports in the input count (seconds of audio, images)
        ("whisper-1", rate("0.006", "0")),
        ("dall-e-3", rate("40", "0")),
        ("dall-e-2", rate("20", "0")),
    ],
    default=rate("5", "15"),
)

ANTHROPIC_PRICING = PricingTable.build(
    [
        ("claude-3-opus", rate("15", "75")),
        ("claude-3-sonnet", rate("3", "15")),
        ("claude-3-haiku", rate("0.25", "1.25")),
        ("claude-3-5-sonnet", rate("3", "15")),
        ("claude-3-5-haiku", rate("0.8", "4")),
        ("claude-3-7-sonnet", rate("3", "15")),
        ("claude-opus-4", rate("15", "75")),
        ("claude-sonnet-4", rate("3", "15")),
        ("claude-haiku-4", rate("1", "5")),
        ("claude-2", rate("8", "24")),
        ("claude-instant-1", rate("0.8", "2.4")),
    ],
    default=rate("3", "15"),
)

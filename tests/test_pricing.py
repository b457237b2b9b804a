"""Tests for token pricing tables."""

from decimal import Decimal

from devcosts.app.usage_sync.providers.pricing import (
    ANTHROPIC_PRICING,
    OPENAI_PRICING,
    PricingTable,
    rate,
    round_cents,
)


def test_cost_in_cents_for_gpt_4o():
    # $5/1M input, $15/1M output: 100 + 150 cents
    assert OPENAI_PRICING.cost_cents("gpt-4o", 200_000, 100_000) == 250


def test_longer_prefix_wins_over_shorter_one():
    assert OPENAI_PRICING.lookup("gpt-4o-mini-2024-07-18") == rate("0.15", "0.60")
    assert OPENAI_PRICING.lookup("gpt-4o-2024-08-06") == rate("5", "15")
    assert OPENAI_PRICING.lookup("gpt-4-turbo-preview") == rate("10", "30")
    assert OPENAI_PRICING.lookup("gpt-4-0613") == rate("30", "60")


def test_unknown_model_uses_default_rate():
    assert OPENAI_PRICING.lookup("some-future-model") == OPENAI_PRICING.default
    assert OPENAI_PRICING.cost_cents("some-future-model", 200_000, 100_000) == 250


def test_dotted_model_names_are_normalized():
    assert ANTHROPIC_PRICING.lookup("claude-3.5-haiku") == rate("0.8", "4")
    assert ANTHROPIC_PRICING.lookup("Claude-3-Opus-20240229") == rate("15", "75")


def test_anthropic_sonnet_4_pricing():
    # 1M input at $3 + 1M output at $15
    assert ANTHROPIC_PRICING.cost_cents("claude-sonnet-4-20250514", 1_000_000, 1_000_000) == 1800


def test_zero_tokens_cost_nothing():
    assert OPENAI_PRICING.cost_cents("gpt-4o", 0, 0) == 0


def test_rounding_is_half_up():
    assert round_cents(Decimal("0.5")) == 1
    assert round_cents(Decimal("2.5")) == 3
    assert round_cents(Decimal("2.49")) == 2


def test_table_order_is_respected():
    table = PricingTable.build(
        [("model-a", rate("1", "1")), ("model", rate("2", "2"))],
        default=rate("9", "9"),
    )
    assert table.lookup("model-a-large") == rate("1", "1")
    assert table.lookup("model-b") == rate("2", "2")
    assert table.lookup("other") == rate("9", "9")


def test_dated_turbo_snapshot_is_not_priced_as_gpt_4_1():
    assert OPENAI_PRICING.lookup("gpt-4-1106-preview") == rate("10", "30")
    assert OPENAI_PRICING.lookup("gpt-4.1-2025-04-14") == rate("2", "8")


def test_audio_and_image_models_have_their_own_rates():
    assert OPENAI_PRICING.lookup("whisper-1") == rate("0.006", "0")
    assert OPENAI_PRICING.lookup("dall-e-3") == rate("40", "0")
    assert OPENAI_PRICING.lookup("dall-e-2") == rate("20", "0")
    assert OPENAI_PRICING.lookup("dall-e-3") != OPENAI_PRICING.default

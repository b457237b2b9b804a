"""Tests for alert evaluation, cooldown and notification."""

from datetime import date, datetime, timedelta

import pytest

from devcosts.app import models
from devcosts.app.alert_evaluator import AlertEvaluator
from devcosts.app.models import AlertType

from conftest import RecordingNotifier

NOW = datetime(2024, 3, 10, 12, 0)


@pytest.fixture
def make_alert(db, user):
    def _make(alert_type, threshold_cents, provider=None, is_active=True, owner=None):
        alert = models.Alert(
            user_id=(owner or user).id,
            type=alert_type,
            provider=provider,
            threshold_cents=threshold_cents,
            is_active=is_active,
        )
        db.add(alert)
        db.commit()
        db.refresh(alert)
        return alert
    return _make


@pytest.fixture
def evaluator(db, notifier):
    return AlertEvaluator(db, notifier=notifier, cooldown_hours=24, app_url="https://devcosts.test")


def history(db, alert):
    return db.query(models.AlertHistory).filter(models.AlertHistory.alert_id == alert.id).all()


class TestBudgetAndProviderAlerts:
    def test_budget_alert_fires_on_month_spend(self, db, evaluator, user, make_connection, add_usage, make_alert, notifier):
        connection = make_connection(user, "openai")
        add_usage(connection, date(2024, 3, 2), 400)
        add_usage(connection, date(2024, 3, 5), 200)
        add_usage(connection, date(2024, 2, 28), 10_000)
        alert = make_alert(AlertType.BUDGET, 500)

        summary = evaluator.evaluate_all(now=NOW)

        assert summary.triggered == 1
        rows = history(db, alert)
        assert len(rows) == 1
        assert rows[0].amount_cents == 600
        assert rows[0].message == "budget alert triggered: $6.00 exceeds threshold of $5.00"
        db.refresh(alert)
        assert alert.last_triggered_at == NOW

        to_address, subject, html_body = notifier.sent[0]
        assert to_address == "dev@example.com"
        assert subject == "DevCosts Alert: Budget threshold exceeded"
        assert "$6.00" in html_body
        assert "https://devcosts.test/dashboard" in html_body

    def test_budget_alert_below_threshold(self, db, evaluator, user, make_connection, add_usage, make_alert, notifier):
        connection = make_connection(user, "openai")
        add_usage(connection, date(2024, 3, 2), 499)
        alert = make_alert(AlertType.BUDGET, 500)

        summary = evaluator.evaluate_all(now=NOW)

        assert summary.triggered == 0
        assert history(db, alert) == []
        assert notifier.sent == []

    def test_provider_alert_only_counts_its_provider(self, db, evaluator, user, make_connection, add_usage, make_alert):
        add_usage(make_connection(user, "openai"), date(2024, 3, 3), 600)
        add_usage(make_connection(user, "stripe"), date(2024, 3, 3), 100)
        openai_alert = make_alert(AlertType.PROVIDER, 500, provider="openai")
        stripe_alert = make_alert(AlertType.PROVIDER, 500, provider="stripe")

        summary = evaluator.evaluate_all(now=NOW)

        assert summary.triggered == 1
        assert [h.amount_cents for h in history(db, openai_alert)] == [600]
        assert history(db, stripe_alert) == []

    def test_spend_of_other_users_is_ignored(self, evaluator, other_user, make_connection, add_usage, make_alert):
        add_usage(make_connection(other_user, "openai"), date(2024, 3, 3), 10_000)
        make_alert(AlertType.BUDGET, 500)

        assert evaluator.evaluate_all(now=NOW).triggered == 0

    def test_inactive_alert_is_not_evaluated(self, evaluator, user, make_connection, add_usage, make_alert):
        add_usage(make_connection(user, "openai"), date(2024, 3, 3), 10_000)
        make_alert(AlertType.BUDGET, 500, is_active=False)

        summary = evaluator.evaluate_all(now=NOW)

        assert summary.checked == 0
        assert summary.triggered == 0


class TestCooldown:
    def test_alert_does_not_refire_within_24_hours(self, db, evaluator, user, make_connection, add_usage, make_alert):
        add_usage(make_connection(user, "openai"), date(2024, 3, 5), 600)
        alert = make_alert(AlertType.BUDGET, 500)

        assert evaluator.evaluate_all(now=NOW).triggered == 1

        later = evaluator.evaluate_all(now=NOW + timedelta(hours=1))
        assert later.triggered == 0
        assert later.skipped_cooldown == 1
        assert len(history(db, alert)) == 1

        next_day = evaluator.evaluate_all(now=NOW + timedelta(hours=25))
        assert next_day.triggered == 1
        assert len(history(db, alert)) == 2
        db.refresh(alert)
        assert alert.last_triggered_at == NOW + timedelta(hours=25)


class TestAnomaly:
    @pytest.fixture
    def connection_with_history(self, user, make_connection, add_usage):
        connection = make_connection(user, "openai")
        for offset in range(1, 31):
            add_usage(connection, date(2024, 3, 31) - timedelta(days=offset), 100)
        return connection

    @pytest.mark.parametrize("today_spend, fires", [(250, True), (150, False)])
    def test_today_against_30_day_average(
        self, db, evaluator, connection_with_history, add_usage, make_alert, today_spend, fires
    ):
        add_usage(connection_with_history, date(2024, 3, 31), today_spend)
        alert = make_alert(AlertType.ANOMALY, 200)

        summary = evaluator.evaluate_all(now=datetime(2024, 3, 31, 12, 0))

        assert summary.triggered == (1 if fires else 0)
        amounts = [h.amount_cents for h in history(db, alert)]
        assert amounts == ([today_spend] if fires else [])

    def test_no_history_never_fires(self, db, evaluator, user, make_connection, add_usage, make_alert):
        add_usage(make_connection(user, "openai"), date(2024, 3, 31), 10_000)
        alert = make_alert(AlertType.ANOMALY, 200)

        assert evaluator.evaluate_all(now=datetime(2024, 3, 31, 12, 0)).triggered == 0
        assert history(db, alert) == []

    def test_anomaly_rule(self):
        assert AlertEvaluator._anomaly_fires(250, 100.0, 200) is True
        assert AlertEvaluator._anomaly_fires(150, 100.0, 200) is False
        assert AlertEvaluator._anomaly_fires(500, 0.0, 200) is False


class TestFailureIsolation:
    def test_notification_failure_still_records_trigger(self, db, user, make_connection, add_usage, make_alert):
        add_usage(make_connection(user, "openai"), date(2024, 3, 5), 600)
        alert = make_alert(AlertType.BUDGET, 500)
        evaluator = AlertEvaluator(db, notifier=RecordingNotifier(fail=True))

        summary = evaluator.evaluate_all(now=NOW)

        assert summary.triggered == 1
        assert summary.errors == 0
        assert len(history(db, alert)) == 1
        db.refresh(alert)
        assert alert.last_triggered_at == NOW

    def test_one_failing_alert_does_not_stop_the_others(
        self, db, evaluator, user, make_connection, add_usage, make_alert, monkeypatch
    ):
        add_usage(make_connection(user, "openai"), date(2024, 3, 5), 600)
        broken = make_alert(AlertType.BUDGET, 100)
        healthy = make_alert(AlertType.BUDGET, 500)
        broken_id = broken.id

        original = evaluator.evaluate

        def evaluate(alert, now):
            if alert.id == broken_id:
                raise RuntimeError("database went away")
            return original(alert, now)

        monkeypatch.setattr(evaluator, "evaluate", evaluate)

        summary = evaluator.evaluate_all(now=NOW)

        assert summary.errors == 1
        assert summary.triggered == 1
        assert len(history(db, healthy)) == 1
        assert history(db, broken) == []

    def test_without_notifier(self, db, user, make_connection, add_usage, make_alert):
        add_usage(make_connection(user, "openai"), date(2024, 3, 5), 600)
        make_alert(AlertType.BUDGET, 500)

        assert AlertEvaluator(db).evaluate_all(now=NOW).triggered == 1

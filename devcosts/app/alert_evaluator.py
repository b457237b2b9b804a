"""
Alert Evaluator

Recomputes spend aggregates for every active alert and fires the ones whose
threshold is crossed. Runs on a schedule, independently of usage sync.

Alert types:
- budget: current-month spend across all providers
- provider: current-month spend for one provider
- anomaly: today's spend versus the trailing 30-day daily average;
  threshold_cents holds the multiplier x 100 (200 means 2.0x)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from devcosts.app.clock import as_utc_naive, format_cents, utcnow
from devcosts.app.models import Alert, AlertHistory, AlertType
from devcosts.app.usage_sync.usage_store import UsageRecordStore
from devcosts.email import render_alert_email


logger = logging.getLogger(__name__)

ANOMALY_LOOKBACK_DAYS = 30


@dataclass
class AlertCheckSummary:
    checked: int = 0
    triggered: int = 0
    skipped_cooldown: int = 0
    errors: int = 0


class AlertEvaluator:
    def __init__(
        self,
        db: Session,
        notifier=None,
        cooldown_hours: int = 24,
        app_url: str = ""
    ):
        """
        Args:
            db: Database session
            notifier: Object with send(to_address, subject, html_body); optional
            cooldown_hours: Minimum time between two firings of one alert
            app_url: Base URL linked from notification emails
        """
        self.db = db
        self.notifier = notifier
        self.cooldown = timedelta(hours=cooldown_hours)
        self.app_url = app_url.rstrip("/")

    def evaluate_all(self, now: Optional[datetime] = None) -> AlertCheckSummary:
        """
        Evaluate every active alert once.

        A failure while evaluating one alert is logged and counted; the
        remaining alerts are still evaluated.

        Args:
            now: Evaluation time as naive UTC (default: current time)

        Returns:
            AlertCheckSummary
        """
        now = now or utcnow()
        alerts = self.db.query(Alert).filter(Alert.is_active == True).all()
        logger.info(f"Checking {len(alerts)} alerts")

        summary = AlertCheckSummary()
        for alert in alerts:
            alert_id = alert.id
            summary.checked += 1
            try:
                if self.in_cooldown(alert, now):
                    summary.skipped_cooldown += 1
                    continue
                if self.evaluate(alert, now):
                    summary.triggered += 1
            except Exception:
                self.db.rollback()
                logger.exception(f"Error processing alert {alert_id}")
                summary.errors += 1

        logger.info(f"Triggered {summary.triggered} alerts ({summary.errors} errors)")
        return summary

    def in_cooldown(self, alert: Alert, now: datetime) -> bool:
        last = as_utc_naive(alert.last_triggered_at)
        return last is not None and now - last < self.cooldown

    def evaluate(self, alert: Alert, now: datetime) -> bool:
        """Evaluate one alert and record a trigger. Returns True when it fired."""
        today = now.date()

        if alert.type == AlertType.ANOMALY:
            current, average = self._anomaly_spend(alert, today)
            if not self._anomaly_fires(current, average, alert.threshold_cents):
                return False
            multiplier = alert.threshold_cents / 100
            message = (
                f"anomaly alert triggered: today's spend of {format_cents(current)} is more than "
                f"{multiplier:g}x the 30-day average of {format_cents(round(average))}"
            )
        else:
            current = self._month_spend(alert, today)
            if current < alert.threshold_cents:
                return False
            message = (
                f"{alert.type.value} alert triggered: {format_cents(current)} exceeds "
                f"threshold of {format_cents(alert.threshold_cents)}"
            )

        self.db.add(AlertHistory(
            alert_id=alert.id,
            triggered_at=now,
            amount_cents=current,
            message=message
        ))
        alert.last_triggered_at = now
        self.db.commit()

        logger.info(f"Alert {alert.id} ({alert.type.value}) triggered at {current} cents")
        self._notify(alert, current)
        return True

    def _month_spend(self, alert: Alert, today: date) -> int:
        month_start = today.replace(day=1)
        provider = alert.provider if alert.type == AlertType.PROVIDER else None
        return UsageRecordStore.sum_spend(self.db, alert.user_id, month_start, today, provider=provider)

    def _anomaly_spend(self, alert: Alert, today: date):
        today_spend = UsageRecordStore.sum_spend(self.db, alert.user_id, today, today)
        history_total = UsageRecordStore.sum_spend(
            self.db,
            alert.user_id,
            today - timedelta(days=ANOMALY_LOOKBACK_DAYS),
            today - timedelta(days=1)
        )
        return today_spend, history_total / ANOMALY_LOOKBACK_DAYS

    @staticmethod
    def _anomaly_fires(today_spend: int, average: float, threshold_cents: int) -> bool:
        """
        Example:
            average 100/day, threshold 200 (2.0x):
            today 250 -> 250 > 200 and 250 >= 200, fires
            today 150 -> does not fire
        """
        if average <= 0:
            return False
        return today_spend > average * (threshold_cents / 100) and today_spend >= threshold_cents

    def _notify(self, alert: Alert, current: int) -> None:
        if self.notifier is None:
            return

        owner = alert.owner
        if owner is None or not owner.email:
            logger.warning(f"Alert {alert.id}: owner has no email address, skipping notification")
            return

        if alert.type == AlertType.BUDGET:
            label, subject_label = "total", "Budget"
        elif alert.type == AlertType.PROVIDER:
            label = subject_label = alert.provider
        else:
            label, subject_label = "daily", "Anomaly"

        try:
            self.notifier.send(
                owner.email,
                f"DevCosts Alert: {subject_label} threshold exceeded",
                render_alert_email(label, current, alert.threshold_cents, self.app_url)
            )
        except Exception:
            # The trigger is already recorded; delivery is best effort
            logger.exception(f"Failed to send notification for alert {alert.id}")

import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
import ssl

from devcosts.app.clock import format_cents

logger = logging.getLogger(__name__)


class EmailNotifier:
    """Deliver alert notifications over SMTP (SSL)."""

    def __init__(self, settings):
        self.settings = settings

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.smtp_host and self.settings.smtp_from)

    def send(self, to_address: str, subject: str, html_body: str) -> bool:
        """
        Send one HTML email.

        Delivery problems are logged and reported as False, never raised.
        """
        if not self.is_configured:
            logger.info("SMTP is not configured, skipping alert email")
            return False

        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = self.settings.smtp_from
        msg['To'] = to_address
        msg.attach(MIMEText(html_body, 'html'))

        try:
            context = ssl.create_default_context()
            with smtplib.SMTP_SSL(self.settings.smtp_host, self.settings.smtp_port, context=context) as server:
                if self.settings.smtp_user:
                    server.login(self.settings.smtp_user, self.settings.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send alert email: {type(e).__name__}: {e}")
            return False

        return True


def render_alert_email(label: str, current_cents: int, threshold_cents: int, app_url: str) -> str:
    """HTML body for a triggered alert."""
    return f"""
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <h2>Budget Alert Triggered</h2>
    <p>Your {label} spend has exceeded your configured threshold.</p>
    <ul>
      <li><strong>Current spend:</strong> {format_cents(current_cents)}</li>
      <li><strong>Threshold:</strong> {format_cents(threshold_cents)}</li>
    </ul>
    <p><a href="{app_url}/dashboard">View Dashboard</a></p>
  </body>
</html>
"""

"""
Daily digest module for Deal Hunter.

Emails the top-scoring cached listings once a day.
Supports both SMTP and SendGrid for email delivery.
"""

import html
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from datetime import datetime, timezone
from typing import Optional

from .config import EmailConfig, get_email_config
from .models import Listing

logger = logging.getLogger(__name__)


class DigestError(Exception):
    """The digest could not be sent (missing recipient or delivery failure)."""


# =============================================================================
# EMAIL TEMPLATES
# =============================================================================

DIGEST_EMAIL_SUBJECT = "🚗 Deal Hunter: {count} top auctions for {date}"

DIGEST_EMAIL_HTML = """
<!DOCTYPE html>
<html>
<head>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 640px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #1a202c; color: white; padding: 20px; text-align: center; }}
        .content {{ padding: 20px; background: #f7fafc; }}
        .card {{ background: white; border-radius: 8px; padding: 16px; margin: 12px 0; box-shadow: 0 2px 4px rgba(0,0,0,0.1); }}
        .score {{ float: right; font-size: 22px; font-weight: bold; color: #38a169; }}
        .price {{ font-size: 18px; font-weight: bold; color: #2b6cb0; }}
        .meta {{ color: #718096; font-size: 13px; }}
        .footer {{ text-align: center; padding: 20px; color: #718096; font-size: 12px; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>🚗 Today's Best Auction Deals</h1>
        </div>
        <div class="content">
            {cards}
        </div>
        <div class="footer">
            <p>Market values are estimates from the current bid, not appraisals.</p>
            <p>Deal Hunter daily digest</p>
        </div>
    </div>
</body>
</html>
"""

DIGEST_CARD_HTML = """
<div class="card">
    <span class="score">{deal_score}</span>
    <h3><a href="{url}">{title}</a></h3>
    <p class="price">{current_bid} bid · est. {market_value} ({discount_pct}% under)</p>
    <p class="meta">{time_left} left · {bids} bids · {reserve} · {location}</p>
</div>
"""

DIGEST_EMAIL_TEXT = """
DEAL HUNTER DAILY DIGEST ({date})

{lines}

---
Market values are estimates from the current bid, not appraisals.
"""

DIGEST_LINE_TEXT = "[{deal_score}] {title} | {current_bid} bid, est. {market_value} ({discount_pct}% under) | {time_left} left | {url}"


def format_money(value: int) -> str:
    return f"${value:,.0f}"


def format_time_left(hours: float) -> str:
    if hours < 1:
        return f"{int(round(hours * 60))}m"
    if hours < 48:
        return f"{hours:.1f}h"
    return f"{hours / 24:.1f}d"


def _template_vars(listing: Listing) -> dict:
    return {
        "title": listing.title or f"{listing.year} {listing.make} {listing.model}".strip(),
        "url": listing.url,
        "deal_score": listing.deal_score,
        "current_bid": format_money(listing.current_bid),
        "market_value": format_money(listing.market_value),
        "discount_pct": listing.discount_pct,
        "time_left": format_time_left(listing.hours_left),
        "bids": listing.bid_count,
        "reserve": "No reserve" if listing.no_reserve else "Reserve",
        "location": listing.location,
    }


# =============================================================================
# DIGEST SENDER CLASS
# =============================================================================

class DigestSender:
    """
    Renders and sends the daily digest email.

    Usage:
        sender = DigestSender()
        sender.send_digest(listings)
    """

    def __init__(self, email_config: Optional[EmailConfig] = None):
        """Initialize the digest sender."""
        self.email_config = email_config or get_email_config()

    def render(self, listings: list[Listing], now: Optional[datetime] = None) -> MIMEMultipart:
        """Build the multipart (text + HTML) digest message."""
        now = now or datetime.now(timezone.utc)
        date = now.strftime("%B %d")
        rows = [_template_vars(listing) for listing in listings]

        cards = "".join(
            DIGEST_CARD_HTML.format(**{k: html.escape(str(v)) for k, v in row.items()})
            for row in rows
        )
        lines = "\n".join(DIGEST_LINE_TEXT.format(**row) for row in rows)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = DIGEST_EMAIL_SUBJECT.format(count=len(listings), date=date)
        msg["From"] = f"{self.email_config.from_name} <{self.email_config.from_email}>"
        msg["To"] = self.email_config.digest_recipient

        # Attach text and HTML versions
        msg.attach(MIMEText(DIGEST_EMAIL_TEXT.format(date=date, lines=lines), "plain"))
        msg.attach(MIMEText(DIGEST_EMAIL_HTML.format(cards=cards), "html"))
        return msg

    def send_digest(self, listings: list[Listing]) -> bool:
        """
        Send the digest for the given ranked listings.

        Returns:
            True if an email was sent, False if there was nothing to send

        Raises:
            DigestError: If no recipient is configured or delivery fails
        """
        if not listings:
            logger.info("No listings for digest, skipping")
            return False

        recipient = self.email_config.digest_recipient
        if not recipient:
            raise DigestError("DIGEST_RECIPIENT is not set")

        msg = self.render(listings)

        try:
            # Send based on provider
            if self.email_config.provider == "sendgrid":
                self._send_via_sendgrid(msg, recipient)
            else:
                self._send_via_smtp(msg, recipient)
        except DigestError:
            raise
        except Exception as e:
            raise DigestError(f"Failed to send digest: {e}") from e

        logger.info(f"Sent digest with {len(listings)} listings to {recipient}")
        return True

    def _send_via_smtp(self, msg: MIMEMultipart, to_email: str) -> None:
        """Send email via SMTP."""
        with smtplib.SMTP(self.email_config.smtp_host, self.email_config.smtp_port) as server:
            server.starttls()
            if self.email_config.smtp_user and self.email_config.smtp_password:
                server.login(self.email_config.smtp_user, self.email_config.smtp_password)
            server.send_message(msg)

    def _send_via_sendgrid(self, msg: MIMEMultipart, to_email: str) -> None:
        """Send email via SendGrid API."""
        import sendgrid
        from sendgrid.helpers.mail import Mail, Email, To

        sg = sendgrid.SendGridAPIClient(api_key=self.email_config.sendgrid_api_key)

        # Extract content from MIMEMultipart
        html_content = None
        text_content = None
        for part in msg.walk():
            if part.get_content_type() == "text/html":
                html_content = part.get_payload(decode=True).decode()
            elif part.get_content_type() == "text/plain":
                text_content = part.get_payload(decode=True).decode()

        message = Mail(
            from_email=Email(self.email_config.from_email, self.email_config.from_name),
            to_emails=To(to_email),
            subject=msg["Subject"],
            html_content=html_content or text_content,
        )

        response = sg.send(message)

        if response.status_code not in (200, 201, 202):
            raise DigestError(f"SendGrid error: {response.status_code}")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def send_digest(listings: list[Listing]) -> bool:
    """
    Convenience function to send the digest.

    Args:
        listings: Ranked listings, best first

    Returns:
        True if an email was sent
    """
    sender = DigestSender()
    return sender.send_digest(listings)

from __future__ import annotations

import logging
from html import escape
from typing import Optional

import httpx

from couponhub.core.config import settings

logger = logging.getLogger(__name__)


class MailerError(Exception):
    pass


class ResendMailer:
    """Thin client for the Resend transactional email HTTP API."""

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None, sender: Optional[str] = None):
        self.api_key = settings.RESEND_API_KEY if api_key is None else api_key
        self.api_url = api_url or settings.EMAIL_API_URL
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = 10

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def send(self, *, to: str, subject: str, html: str, text: str) -> None:
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html, "text": text}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(self.api_url, json=payload, headers=headers)

        if r.status_code >= 400:
            raise MailerError(f"Email API error {r.status_code}: {r.text}")


mailer = ResendMailer()


async def _deliver(kind: str, *, to: str, subject: str, html: str, text: str) -> None:
    """Background-task entry point. Never raises; email is a side effect of the request, not part of it."""
    if not mailer.enabled:
        logger.info("Email not configured; skipping %s email to %s", kind, to)
        return
    try:
        await mailer.send(to=to, subject=subject, html=html, text=text)
    except (httpx.HTTPError, MailerError):
        logger.exception("Failed to send %s email to %s", kind, to)
        return
    logger.info("Sent %s email to %s", kind, to)


async def send_welcome_email(to: str, name: Optional[str]) -> None:
    who = name or "there"
    await _deliver(
        "welcome",
        to=to,
        subject="Welcome to CouponHub",
        html=f"<p>Hi {escape(who)},</p><p>Your CouponHub account is ready. Start saving at "
        f'<a href="{settings.PUBLIC_BASE_URL}">{settings.PUBLIC_BASE_URL}</a>.</p>',
        text=f"Hi {who},\n\nYour CouponHub account is ready. Start saving at {settings.PUBLIC_BASE_URL}.",
    )


async def send_password_reset_email(to: str, name: Optional[str], token: str) -> None:
    who = name or "there"
    url = f"{settings.PUBLIC_BASE_URL}/reset-password?token={token}"
    minutes = settings.PASSWORD_RESET_TTL_MINUTES
    await _deliver(
        "password reset",
        to=to,
        subject="Reset your CouponHub password",
        html=f'<p>Hi {escape(who)},</p><p><a href="{url}">Reset your password</a>. '
        f"This link expires in {minutes} minutes.</p>",
        text=f"Hi {who},\n\nReset your password: {url}\nThis link expires in {minutes} minutes.",
    )


async def send_favorite_added_email(to: str, name: Optional[str], coupon_title: str, brand_name: str) -> None:
    who = name or "there"
    await _deliver(
        "favorite added",
        to=to,
        subject=f"Saved: {coupon_title}",
        html=f"<p>Hi {escape(who)},</p><p>You saved <b>{escape(coupon_title)}</b> from {escape(brand_name)} to your favorites.</p>",
        text=f"Hi {who},\n\nYou saved {coupon_title} from {brand_name} to your favorites.",
    )

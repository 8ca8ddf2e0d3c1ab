"""
Transactional email and webhook notifications.

Sends are best-effort: `dispatch` queues them on the response's background
tasks, and a failure is logged without reaching the caller.
"""

import logging

import requests
import resend
from fastapi import BackgroundTasks, Depends

from config import Settings, get_settings

log = logging.getLogger(__name__)


class Mailer:
    def __init__(self, api_key: str, sender: str, client_url: str, webhook_url: str | None = None):
        self.api_key = api_key
        self.sender = sender
        self.client_url = client_url.rstrip("/")
        self.webhook_url = webhook_url

    def send(self, to: str | None, subject: str, html: str):
        if not to:
            return None
        if not self.api_key:
            log.warning("RESEND_API_KEY not set, skipping email %r to %s", subject, to)
            return None
        resend.api_key = self.api_key
        return resend.Emails.send({"from": self.sender, "to": [to], "subject": subject, "html": html})

    def post_webhook(self, payload: dict):
        if not self.webhook_url:
            return
        response = requests.post(self.webhook_url, json=payload, timeout=10)
        response.raise_for_status()

    def send_welcome(self, user: dict):
        if not user.get("email"):
            return
        html = f"""
            <h2>Welcome, {user['name']}</h2>
            <p>Thank you for registering with us.</p>
            <p>You can now explore our products and manage your cart and orders.</p>
        """
        self.send(user["email"], "Welcome!", html)
        self.post_webhook({"type": "welcome", "name": user["name"], "email": user["email"], "phone": user.get("phone")})

    def send_verification(self, user: dict, token: str):
        verify_url = f"{self.client_url}/verify-email?token={token}"
        html = f"""
            <h2>Verify your email</h2>
            <p>Hello {user['name']},</p>
            <p>Click the link below to verify your email (valid for 24 hours):</p>
            <p><a href="{verify_url}">{verify_url}</a></p>
            <p>If you did not create this account, you can ignore this email.</p>
        """
        self.send(user.get("email"), "Verify your email", html)

    def send_password_reset(self, user: dict, token: str):
        reset_url = f"{self.client_url}/reset-password/{token}"
        html = f"""
            <h2>Reset your password</h2>
            <p>Hello {user['name']},</p>
            <p>Click the link below to set a new password (valid for 1 hour):</p>
            <p><a href="{reset_url}">{reset_url}</a></p>
            <p>If you did not request this, you can ignore this email.</p>
        """
        self.send(user.get("email"), "Password reset", html)
        self.post_webhook({"type": "password_reset", "email": user.get("email"), "phone": user.get("phone")})


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(settings.resend_api_key, settings.mail_from, settings.client_url, settings.webhook_url)


def _best_effort(send, *args):
    try:
        send(*args)
    except Exception:
        log.exception("Notification %s failed", getattr(send, "__name__", send))


def dispatch(background_tasks: BackgroundTasks, send, *args):
    background_tasks.add_task(_best_effort, send, *args)

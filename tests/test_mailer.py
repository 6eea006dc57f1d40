import asyncio
import logging

import httpx

from couponhub.integrations import mailer as mailer_module


def test_skipped_without_api_key(monkeypatch):
    calls = []

    async def send(**kwargs):
        calls.append(kwargs)

    monkeypatch.setattr(mailer_module.mailer, "api_key", "")
    monkeypatch.setattr(mailer_module.mailer, "send", send)

    asyncio.run(mailer_module.send_welcome_email("a@example.com", "A"))

    assert calls == []


def test_reset_email_carries_link(monkeypatch):
    sent = {}

    async def send(**kwargs):
        sent.update(kwargs)
        return {"id": "email-1"}

    monkeypatch.setattr(mailer_module.mailer, "api_key", "re_test")
    monkeypatch.setattr(mailer_module.mailer, "send", send)

    asyncio.run(mailer_module.send_password_reset_email("a@example.com", "A", "tok123"))

    assert sent["to"] == "a@example.com"
    assert "reset-password?token=tok123" in sent["text"]


def test_delivery_failure_is_swallowed(monkeypatch):
    async def send(**kwargs):
        raise httpx.ConnectError("provider unreachable")

    monkeypatch.setattr(mailer_module.mailer, "api_key", "re_test")
    monkeypatch.setattr(mailer_module.mailer, "send", send)

    asyncio.run(mailer_module.send_favorite_added_email("a@example.com", "A", "Ten off", "Acme"))


def test_non_json_success_body_is_accepted(monkeypatch, caplog):
    def handler(request):
        return httpx.Response(200, text="queued")

    real_client = httpx.AsyncClient

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(mailer_module.mailer, "api_key", "re_test")
    monkeypatch.setattr(mailer_module.httpx, "AsyncClient", client_factory)
    caplog.set_level(logging.INFO, logger="couponhub.integrations.mailer")

    asyncio.run(mailer_module.send_welcome_email("a@example.com", "A"))

    assert "Sent welcome email to a@example.com" in caplog.text

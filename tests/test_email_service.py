"""
Tests for the Resend password reset email.
"""

import resend

from entrega.services import email_service
from entrega.services.email_service import build_reset_link, send_password_reset_email


def test_reset_link_uses_app_url(monkeypatch):
    monkeypatch.setenv("APP_URL", "https://app.entrega.com/")
    assert build_reset_link("abc") == "https://app.entrega.com/reset-password?token=abc"


def test_without_api_key_nothing_is_sent(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    called = []
    monkeypatch.setattr(resend.Emails, "send", lambda params: called.append(params))

    ok, error = send_password_reset_email("a@b.com", "Ana", "https://x/reset")
    assert ok is False
    assert "RESEND_API_KEY" in error
    assert called == []


def test_without_sender_fails(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_test_123")
    monkeypatch.delenv("EMAIL_FROM", raising=False)
    ok, error = send_password_reset_email("a@b.com", "Ana", "https://x/reset")
    assert ok is False
    assert "EMAIL_FROM" in error


def test_sends_html_and_text(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_test_123")
    monkeypatch.setenv("EMAIL_FROM", "Entrega <noreply@entrega.com>")
    sent = []

    def fake_send(params):
        sent.append(params)
        return {"id": "email_1"}

    monkeypatch.setattr(resend.Emails, "send", fake_send)

    ok, error = send_password_reset_email("a@b.com", "Ana", "https://x/reset?token=t")
    assert (ok, error) == (True, "")
    assert sent[0]["to"] == ["a@b.com"]
    assert "https://x/reset?token=t" in sent[0]["html"]
    assert "https://x/reset?token=t" in sent[0]["text"]


def test_provider_error_is_friendly_and_redacted(monkeypatch, caplog):
    monkeypatch.setenv("RESEND_API_KEY", "re_secret_key")
    monkeypatch.setenv("EMAIL_FROM", "noreply@entrega.com")

    def fake_send(params):
        raise RuntimeError("The entrega.com domain is not verified (key re_secret_key)")

    monkeypatch.setattr(resend.Emails, "send", fake_send)

    ok, error = send_password_reset_email("a@b.com", "Ana", "https://x/reset")
    assert ok is False
    assert "entrega.com" in error
    assert "não está verificado" in error
    assert "re_secret_key" not in caplog.text


def test_friendly_error_mapping():
    assert "inválida ou expirada" in email_service._friendly_error("401 Unauthorized")
    assert "Limite" in email_service._friendly_error("rate limit exceeded")
    assert email_service._friendly_error("boom").startswith("Erro ao enviar email")

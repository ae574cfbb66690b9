"""
Shared fixtures: an in-memory MongoDB per test and a recorder in place of the
WhatsApp gateway.
"""

import sys
import pytest
from mongomock_motor import AsyncMongoMockClient

import anwar_crm.server  # noqa: F401  registers every router and service
import anwar_crm.scheduler_service  # noqa: F401
import anwar_crm.services.health_check  # noqa: F401
import anwar_crm.services.schema_migration  # noqa: F401
from anwar_crm.services import whatsapp_gateway


@pytest.fixture(autouse=True)
def mock_db(monkeypatch):
    """Point every module-level `db` handle at a fresh in-memory database"""
    db = AsyncMongoMockClient()["anwar_crm_test"]
    for name, module in list(sys.modules.items()):
        if name.startswith("anwar_crm") and hasattr(module, "db"):
            monkeypatch.setattr(module, "db", db)
    return db


@pytest.fixture
def sent(monkeypatch):
    """Outbound WhatsApp messages as (phone, message) tuples"""
    messages = []

    async def fake_send(phone, message, api_url=None, api_key=None):
        messages.append((phone, message))
        return {"success": True, "response": {"success": True}}

    monkeypatch.setattr(whatsapp_gateway, "send_whatsapp_message", fake_send)
    return messages


@pytest.fixture(autouse=True)
def no_sendgrid(monkeypatch):
    """Tests never reach SendGrid"""
    from anwar_crm.email_service import email_service
    monkeypatch.setattr(email_service, "api_key", "")


@pytest.fixture
def emails(monkeypatch):
    """Emails handed to SendGrid as (to, subject, html) tuples"""
    from anwar_crm.email_service import EmailService
    outbox = []

    def fake_send(self, to_email, subject, html_content):
        outbox.append((to_email, subject, html_content))
        return True

    monkeypatch.setattr(EmailService, "_send_email", fake_send)
    return outbox

"""
ANWAR CRM - WhatsApp bot tests
Tests: webhook validation, message classification, sheet selection,
data request conversation, rate limiting.
Run: pytest tests/test_whatsapp_bot.py -v
"""

import pytest

from anwar_crm import config
from anwar_crm.schema import ORDERS, VISITS
from anwar_crm.services import whatsapp_bot as bot
from anwar_crm.services.conversation_state import get_conversation_state
from anwar_crm.services.event_logger import list_events
from tests.helpers import _db_op, seed_employees, seed_rows, phone, SR

PRODUCT_ID = "prod-123"


@pytest.fixture(autouse=True)
def product_id(monkeypatch):
    monkeypatch.setattr(config, "MAYTAPI_PRODUCT_ID", PRODUCT_ID)


def webhook(webhook_type, **extra):
    return {"product_id": PRODUCT_ID, "phone_id": "55001", "type": webhook_type, **extra}


def text_message(text, sender=None, from_me=False):
    number = sender or phone(SR)
    return webhook(
        "message",
        user={"phone": number, "name": "Sohel"},
        conversation=f"{number}@c.us",
        message={"id": "m1", "type": "text", "text": text, "fromMe": from_me},
    )


async def seed_submissions():
    await seed_employees(SR)
    await seed_rows(ORDERS, {"Order ID": "ORD-001", "Submitter Email": SR.email})
    await seed_rows(VISITS, {"Visit ID": "V-20250115-001", "Email Address": SR.email},
                    {"Visit ID": "V-20250115-002", "Email Address": SR.email})


# ═══════════════════════════════════════════════════════════════
# 1. UNIT: classification and parsing
# ═══════════════════════════════════════════════════════════════

class TestClassification:

    @pytest.mark.parametrize("text", ["need to see data", "Show me DATA please", "data", "my sheets"])
    def test_data_requests(self, text):
        assert bot.is_data_request_message(text)

    @pytest.mark.parametrize("text", ["hello", "database", "help"])
    def test_not_data_requests(self, text):
        assert not bot.is_data_request_message(text)

    def test_help_words(self):
        assert bot.is_help_message(" HELP ")
        assert bot.is_help_message("what can you do")
        assert not bot.is_help_message("help me with orders")

    def test_extract_phone_number(self):
        assert bot.extract_phone_number({"phone": "8801711000005"}, None) == "8801711000005"
        assert bot.extract_phone_number(None, "8801711000005@c.us") == "8801711000005"
        assert bot.extract_phone_number({}, "8801711000005@s.whatsapp.net") == "8801711000005"
        assert bot.extract_phone_number(None, None) is None

    def test_extract_message_text(self):
        assert bot.extract_message_text({"type": "text", "text": "  hi "}) == "hi"
        assert bot.extract_message_text({"type": "image", "caption": "site photo"}) == "site photo"
        assert bot.extract_message_text({"type": "image"}) is None


class TestSheetSelection:
    SHEETS = [{"sheet_type": "Orders"}, {"sheet_type": "Visits"}, {"sheet_type": "Potential Sites"}]

    @pytest.mark.parametrize("reply, expected", [
        ("2", "Visits"),
        ("3.", "Potential Sites"),
        ("ORDERS", "Orders"),
        ("potential", "Potential Sites"),
        ("I want my visits", "Visits"),
        ("site", "Potential Sites"),
    ])
    def test_matches(self, reply, expected):
        assert bot.match_sheet_from_reply(reply, self.SHEETS)["sheet_type"] == expected

    @pytest.mark.parametrize("reply", ["", "9", "xy", "invoices"])
    def test_no_match(self, reply):
        assert bot.match_sheet_from_reply(reply, self.SHEETS) is None


# ═══════════════════════════════════════════════════════════════
# 2. WEBHOOK dispatch
# ═══════════════════════════════════════════════════════════════

class TestWebhook:

    def test_wrong_product_id(self, sent):
        payload = {**webhook("message"), "product_id": "someone-else"}
        assert _db_op(bot.process_webhook(payload)) == bot.UNAUTHORIZED

    def test_missing_phone_id(self):
        payload = webhook("status")
        del payload["phone_id"]
        assert _db_op(bot.process_webhook(payload)) == bot.UNAUTHORIZED

    def test_status_disconnected_alerts_admin(self, emails):
        result = _db_op(bot.process_webhook(webhook("status", status="disconnected")))
        assert result == bot.STATUS_PROCESSED
        assert len(emails) == 1
        assert "GATEWAY_DISCONNECTED" in emails[0][1]

    def test_status_active_is_only_logged(self, emails):
        assert _db_op(bot.process_webhook(webhook("status", status="active"))) == bot.STATUS_PROCESSED
        assert emails == []

    def test_ack_and_error(self, emails):
        ack = webhook("ack", data=[{"msgId": "m1", "ackType": "delivered"}])
        assert _db_op(bot.process_webhook(ack)) == bot.ACK_PROCESSED
        assert _db_op(bot.process_webhook(webhook("error", code=500))) == bot.ERROR_PROCESSED
        assert [subject for _, subject, _ in emails] == ["🚨 WhatsApp gateway alert - GATEWAY_ERROR"]

    def test_unhandled_type(self):
        assert _db_op(bot.process_webhook(webhook("poll"))) == bot.UNHANDLED_TYPE

    def test_message_webhook_replies(self, sent):
        async def run():
            await seed_employees(SR)
            return await bot.process_webhook(text_message("help"))

        assert _db_op(run()) == bot.MESSAGE_PROCESSED
        assert len(sent) == 1
        assert "Hi Sohel Rana" in sent[0][1]

    def test_own_messages_are_ignored(self, sent):
        async def run():
            await seed_employees(SR)
            return await bot.process_webhook(text_message("help", from_me=True))

        assert _db_op(run()) == bot.MESSAGE_PROCESSED
        assert sent == []


# ═══════════════════════════════════════════════════════════════
# 3. CONVERSATION
# ═══════════════════════════════════════════════════════════════

class TestConversation:

    def test_invalid_phone(self, sent):
        assert _db_op(bot.handle_incoming_message("12345", "help")) == "invalid_phone"
        assert sent == []

    def test_unregistered_number(self, sent):
        assert _db_op(bot.handle_incoming_message("01999000000", "help")) == "unregistered"
        assert "not registered" in sent[0][1]

    def test_unrecognized_suggests_data_command(self, sent):
        async def run():
            await seed_employees(SR)
            return await bot.handle_incoming_message(phone(SR), "show my report")

        assert _db_op(run()) == "unrecognized"
        assert "need to see data" in sent[0][1]

    def test_no_submissions_yet(self, sent):
        async def run():
            await seed_employees(SR)
            action = await bot.handle_incoming_message(phone(SR), "need to see data")
            return action, await get_conversation_state(phone(SR))

        action, state = _db_op(run())
        assert action == "data_request"
        assert state is None
        assert "don't have any data submissions" in sent[0][1]

    def test_data_request_then_number(self, sent):
        async def run():
            await seed_submissions()
            first = await bot.handle_incoming_message(phone(SR), "need to see data")
            state = await get_conversation_state(phone(SR))
            second = await bot.handle_incoming_message(phone(SR), "1")
            return first, state, second, await get_conversation_state(phone(SR)), await list_events(entity_type="bot")

        first, state, second, cleared, events = _db_op(run())
        assert (first, second) == ("data_request", "selection")
        assert [s["sheet_type"] for s in state["available_sheets"]] == ["Orders", "Visits"]
        assert "1. Orders" in sent[0][1]
        assert "📊 Records: 2" in sent[0][1]

        link = sent[1][1]
        assert "/api/sheets/Orders/rows?submitter=sohel%40anwargroup.com" in link
        assert cleared is None
        assert "sheet_access" in [e["action"] for e in events]
        print("✅ Data request → selection → link")

    def test_selection_by_name(self, sent):
        async def run():
            await seed_submissions()
            await bot.handle_incoming_message(phone(SR), "my data")
            return await bot.handle_incoming_message(phone(SR), "visits")

        assert _db_op(run()) == "selection"
        assert "Visits sheet" in sent[-1][1]

    def test_unmatched_selection_keeps_state(self, sent):
        async def run():
            await seed_submissions()
            await bot.handle_incoming_message(phone(SR), "need to see data")
            action = await bot.handle_incoming_message(phone(SR), "invoices")
            return action, await get_conversation_state(phone(SR))

        action, state = _db_op(run())
        assert action == "selection"
        assert state["awaiting_selection"] is True
        assert "couldn't understand" in sent[-1][1]

    def test_cancel(self, sent):
        async def run():
            await seed_submissions()
            await bot.handle_incoming_message(phone(SR), "need to see data")
            action = await bot.handle_incoming_message(phone(SR), "Cancel")
            return action, await get_conversation_state(phone(SR))

        action, state = _db_op(run())
        assert action == "cancelled"
        assert state is None
        assert sent[-1][1].startswith("✅ Cancelled")

    def test_rate_limit(self, sent, monkeypatch):
        monkeypatch.setattr(config, "BOT_RATE_LIMIT_MAX", 2)

        async def run():
            await seed_employees(SR)
            return [await bot.handle_incoming_message(phone(SR), "help") for _ in range(3)]

        assert _db_op(run()) == ["help", "help", "rate_limited"]
        assert "too quickly" in sent[-1][1]

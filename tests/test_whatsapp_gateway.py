"""
ANWAR CRM - WhatsApp gateway client tests (httpx MockTransport, no network)
Run: pytest tests/test_whatsapp_gateway.py -v
"""

import json
import httpx
import pytest

from anwar_crm import config
from anwar_crm.services import whatsapp_gateway
from anwar_crm.services.whatsapp_gateway import send_whatsapp_message, truncate_message, TRUNCATION_NOTICE
from tests.helpers import _db_op

API_URL = "https://api.maytapi.test/api/prod/55001/sendMessage"


class CapturedRequests(list):
    """Requests seen by the mock transport"""


@pytest.fixture
def gateway(monkeypatch):
    """Route the gateway's httpx client through a handler; returns the captured requests"""
    captured = CapturedRequests()
    state = {"handler": lambda request: httpx.Response(200, json={"success": True})}
    real_client = httpx.AsyncClient

    def handler(request):
        captured.append(request)
        return state["handler"](request)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(whatsapp_gateway.httpx, "AsyncClient", client_factory)
    monkeypatch.setattr(config, "MAYTAPI_API_URL", API_URL)
    monkeypatch.setattr(config, "MAYTAPI_API_KEY", "secret")
    captured.respond = lambda fn: state.update(handler=fn)
    return captured


class TestTruncate:

    def test_short_message_untouched(self):
        assert truncate_message("hello", 4096) == "hello"

    def test_long_message_cut(self):
        result = truncate_message("x" * 5000, 4096)
        assert result.endswith(TRUNCATION_NOTICE)
        assert len(result) == 4096 - 50 + len(TRUNCATION_NOTICE)


class TestSend:

    def test_payload_and_auth(self, gateway):
        result = _db_op(send_whatsapp_message("01711000005", "Order ORD-001 received"))
        assert result["success"] is True

        request = gateway[0]
        assert str(request.url) == API_URL
        assert request.headers["x-maytapi-key"] == "secret"
        assert json.loads(request.content) == {
            "to_number": "8801711000005", "type": "text", "message": "Order ORD-001 received",
        }

    def test_api_error(self, gateway):
        gateway.respond(lambda request: httpx.Response(200, json={"success": False, "message": "Invalid number"}))
        result = _db_op(send_whatsapp_message("01711000005", "hi"))
        assert result == {"success": False, "error": "Invalid number"}

    def test_http_error_status(self, gateway):
        gateway.respond(lambda request: httpx.Response(502, text="Bad gateway"))
        result = _db_op(send_whatsapp_message("01711000005", "hi"))
        assert result["success"] is False
        assert result["error"] == "Bad gateway"

    def test_timeout(self, gateway):
        def slow(request):
            raise httpx.ReadTimeout("timed out", request=request)

        gateway.respond(slow)
        assert _db_op(send_whatsapp_message("01711000005", "hi")) == {"success": False, "error": "timeout"}

    def test_missing_phone(self, gateway):
        result = _db_op(send_whatsapp_message("", "hi"))
        assert result["success"] is False
        assert gateway == []

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(config, "MAYTAPI_API_KEY", "")
        result = _db_op(send_whatsapp_message("01711000005", "hi"))
        assert result == {"success": False, "error": "gateway not configured"}

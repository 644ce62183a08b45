"""Test the Telegram host bridge."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from storefront.config import Config
from storefront.exceptions import HostBridgeError
from storefront.host_bridge import MAX_MESSAGE_LENGTH, TelegramBotBridge, get_host_bridge


def _session(status=200, body=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.json.return_value = body if body is not None else {"ok": True}
    session = MagicMock()
    session.post.return_value = resp
    return session


class TestTelegramBotBridge:

    def test_send_data_posts_json_message(self):
        session = _session()
        bridge = TelegramBotBridge("TOKEN", "-100", session=session)

        bridge.send_data({"totalEur": 5.0, "items": []})

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.telegram.org/botTOKEN/sendMessage"
        assert kwargs["json"]["chat_id"] == "-100"
        assert json.loads(kwargs["json"]["text"]) == {"totalEur": 5.0, "items": []}

    def test_show_alert_sends_text(self):
        session = _session()
        TelegramBotBridge("TOKEN", "-100", session=session).show_alert("Catalogue indisponible")
        assert session.post.call_args[1]["json"]["text"] == "Catalogue indisponible"

    def test_ready_and_expand_are_recorded(self):
        session = _session()
        bridge = TelegramBotBridge("TOKEN", "-100", session=session)
        bridge.ready()
        bridge.expand()
        assert bridge.is_ready and bridge.is_expanded
        session.post.assert_not_called()

    def test_rejected_message(self):
        session = _session(status=400, body={"ok": False, "description": "chat not found"})
        with pytest.raises(HostBridgeError, match="chat not found"):
            TelegramBotBridge("TOKEN", "-100", session=session).show_alert("hi")

    def test_non_object_reply_is_rejected(self):
        session = _session(body=["ok"])
        with pytest.raises(HostBridgeError, match="HTTP 200"):
            TelegramBotBridge("TOKEN", "-100", session=session).show_alert("hi")

    def test_transport_error(self):
        session = MagicMock()
        session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(HostBridgeError, match="request failed"):
            TelegramBotBridge("TOKEN", "-100", session=session).show_alert("hi")

    def test_oversized_message(self):
        session = _session()
        with pytest.raises(HostBridgeError, match="exceeds"):
            TelegramBotBridge("TOKEN", "-100", session=session).show_alert("x" * (MAX_MESSAGE_LENGTH + 1))
        session.post.assert_not_called()


class TestGetHostBridge:

    def test_configured(self, monkeypatch):
        monkeypatch.setattr(Config, "TELEGRAM_BOT_TOKEN", "TOKEN")
        monkeypatch.setattr(Config, "TELEGRAM_ORDER_CHAT_ID", "-100")
        assert isinstance(get_host_bridge(), TelegramBotBridge)

    def test_not_configured(self, monkeypatch):
        monkeypatch.setattr(Config, "TELEGRAM_BOT_TOKEN", None)
        assert get_host_bridge() is None

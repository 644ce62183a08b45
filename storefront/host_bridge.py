"""
Host bridge capability: the operations the Mini-App host exposes.

The presentation layer receives a HostBridge instead of reaching for a
global host object; the catalog and pricing code never see it.
"""
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from storefront.config import Config
from storefront.exceptions import HostBridgeError

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
MAX_MESSAGE_LENGTH = 4096


class HostBridge(ABC):
    """Capabilities of the Mini-App host"""

    @abstractmethod
    def ready(self) -> None:
        ...

    @abstractmethod
    def expand(self) -> None:
        ...

    @abstractmethod
    def send_data(self, payload: Dict[str, Any]) -> None:
        ...

    @abstractmethod
    def show_alert(self, message: str) -> None:
        ...


class TelegramBotBridge(HostBridge):
    """
    Server-side bridge through the Telegram Bot API.

    send_data and show_alert post messages to the shop's order chat;
    ready and expand only concern the client view, so they are recorded.
    """

    def __init__(self, token: str, chat_id: str, session: Optional[requests.Session] = None):
        self.token = token
        self.chat_id = chat_id
        self.session = session or requests.Session()
        self.is_ready = False
        self.is_expanded = False

    def ready(self) -> None:
        self.is_ready = True

    def expand(self) -> None:
        self.is_expanded = True

    def send_data(self, payload: Dict[str, Any]) -> None:
        self._send_message(json.dumps(payload, ensure_ascii=False))

    def show_alert(self, message: str) -> None:
        self._send_message(message)

    def _send_message(self, text: str) -> None:
        if len(text) > MAX_MESSAGE_LENGTH:
            raise HostBridgeError(f"Message of {len(text)} characters exceeds {MAX_MESSAGE_LENGTH}")

        url = f"{TELEGRAM_API_BASE}/bot{self.token}/sendMessage"
        try:
            resp = self.session.post(
                url,
                json={"chat_id": self.chat_id, "text": text},
                timeout=Config.ORDER_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            raise HostBridgeError(f"Telegram request failed: {e}") from e

        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if not resp.ok or not body.get("ok"):
            description = body.get("description") or f"HTTP {resp.status_code}"
            raise HostBridgeError(f"Telegram rejected message: {description}")


def get_host_bridge() -> Optional[HostBridge]:
    """Configured bridge, None when no bot is configured"""
    if Config.TELEGRAM_BOT_TOKEN and Config.TELEGRAM_ORDER_CHAT_ID:
        return TelegramBotBridge(Config.TELEGRAM_BOT_TOKEN, Config.TELEGRAM_ORDER_CHAT_ID)
    return None

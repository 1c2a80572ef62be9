from __future__ import annotations

import logging
from typing import Optional, Protocol

import requests

DEFAULT_TIMEOUT = 30
DEFAULT_USER_AGENT = "volume-backup-service"


class Notifier(Protocol):
    def send(self, message: str) -> bool:
        ...


class WebhookNotifier:
    """Posts cycle reports to a chat webhook as ``{"content": ...}`` JSON."""

    def __init__(self, url: str, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._url = url
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": DEFAULT_USER_AGENT})
        self._timeout = timeout
        self._log = logging.getLogger(self.__class__.__name__)

    def send(self, message: str) -> bool:
        try:
            response = self._session.post(self._url, json={"content": message}, timeout=self._timeout)
        except requests.RequestException as exc:
            self._log.error("Error posting message to webhook: %s", exc)
            return False

        if not 200 <= response.status_code < 300:
            self._log.error("Webhook rejected message: %s %s", response.status_code, response.text)
            return False
        return True

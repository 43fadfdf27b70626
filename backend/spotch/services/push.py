from __future__ import annotations

import logging
import re
from typing import Any, Iterable

import httpx
from sqlalchemy.orm import Session

from spotch.core.settings import settings
from spotch.models.user import User

logger = logging.getLogger(__name__)

_EXPO_TOKEN_RE = re.compile(r"^Expo(nent)?PushToken\[[^\]]+\]$")

# Expo rejects requests carrying more than 100 messages.
CHUNK_SIZE = 100


def is_expo_push_token(token: str | None) -> bool:
    return bool(token) and bool(_EXPO_TOKEN_RE.match(str(token).strip()))


class PushNotifier:
    """Fire-and-forget Expo push client.

    Failures never propagate: a lost notification must not undo the game
    action that triggered it.
    """

    def __init__(
        self,
        *,
        endpoint: str | None = None,
        access_token: str | None = None,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._endpoint = (endpoint or settings.expo_push_url).strip()
        self._access_token = (access_token if access_token is not None else settings.expo_access_token) or ""
        self._client = httpx.Client(timeout=httpx.Timeout(timeout_s), transport=transport)

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    def _post(self, messages: list[dict[str, Any]]) -> int:
        sent = 0
        for start in range(0, len(messages), CHUNK_SIZE):
            chunk = messages[start : start + CHUNK_SIZE]
            try:
                resp = self._client.post(self._endpoint, headers=self._headers(), json=chunk)
                resp.raise_for_status()
            except httpx.HTTPError:
                logger.exception("push.send.failed messages=%s", len(chunk))
                continue
            sent += len(chunk)
            logger.debug("push.send.ok messages=%s", len(chunk))
        return sent

    def send(self, token: str | None, title: str, body: str, data: dict[str, Any] | None = None) -> bool:
        if not is_expo_push_token(token):
            logger.warning("push.send.invalid_token token=%s", token)
            return False
        message = {"to": str(token).strip(), "sound": "default", "title": title, "body": body, "data": data or {}}
        return self._post([message]) == 1

    def send_many(
        self,
        tokens: Iterable[str | None],
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> int:
        messages = [
            {"to": str(t).strip(), "sound": "default", "title": title, "body": body, "data": data or {}}
            for t in tokens
            if is_expo_push_token(t)
        ]
        if not messages:
            return 0
        return self._post(messages)

    def notify_user(
        self,
        db: Session,
        user_id: int | None,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        if user_id is None:
            return False
        token = db.query(User.push_token).filter(User.id == user_id).scalar()
        if not token:
            return False
        return self.send(token, title, body, data)


_notifier: PushNotifier | None = None


def get_notifier() -> PushNotifier:
    global _notifier
    if _notifier is None:
        _notifier = PushNotifier()
    return _notifier

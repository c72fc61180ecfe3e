"""
Push Notification Service

Sends push notifications to device tokens over HTTP and fans batches out
concurrently, collecting one outcome per message. Delivery failures are
classified so callers can tell a dead token from a retryable failure.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from threading import Lock
from typing import Hashable, Iterable, Protocol

import httpx
from sqlalchemy.orm import Session

from barberflow.core import config
from barberflow.core.errors import PermanentTokenError, TransientDeliveryError
from barberflow.models.user import User

logger = logging.getLogger(__name__)

_INVALID_TOKEN_ERROR_CODES = {'UNREGISTERED', 'INVALID_ARGUMENT'}


class DeliveryErrorKind(str, Enum):
    INVALID_TOKEN = 'invalid-token'
    TRANSIENT = 'transient'


@dataclass(frozen=True)
class DeliveryResult:
    ok: bool
    error_kind: DeliveryErrorKind | None = None
    detail: str | None = None

    @classmethod
    def success(cls) -> 'DeliveryResult':
        return cls(ok=True)

    @classmethod
    def failure(cls, error_kind: DeliveryErrorKind, detail: str | None = None) -> 'DeliveryResult':
        return cls(ok=False, error_kind=error_kind, detail=detail)

    def raise_for_error(self) -> None:
        if self.ok:
            return
        if self.error_kind == DeliveryErrorKind.INVALID_TOKEN:
            raise PermanentTokenError(self.detail or 'Recipient token is no longer valid.')
        raise TransientDeliveryError(self.detail or 'Push delivery failed.')


class NotificationSender(Protocol):
    def send(self, recipient_token: str, title: str, body: str) -> DeliveryResult:
        ...


class HttpPushSender:
    """Sends messages to an FCM-compatible HTTP endpoint."""

    def __init__(
        self,
        api_url: str | None = None,
        server_key: str | None = None,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ):
        self.api_url = api_url or config.PUSH_API_URL
        self.server_key = server_key if server_key is not None else config.PUSH_SERVER_KEY
        self._client = client or httpx.Client(timeout=timeout or config.PUSH_TIMEOUT_SECONDS)

    def send(self, recipient_token: str, title: str, body: str) -> DeliveryResult:
        payload = {
            'message': {
                'token': recipient_token,
                'notification': {'title': title, 'body': body},
            }
        }
        headers = {'Content-Type': 'application/json'}
        if self.server_key:
            headers['Authorization'] = f'Bearer {self.server_key}'

        try:
            response = self._client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            return DeliveryResult.failure(DeliveryErrorKind.TRANSIENT, str(exc))

        if response.is_success:
            return DeliveryResult.success()

        if _is_invalid_token_response(response):
            return DeliveryResult.failure(DeliveryErrorKind.INVALID_TOKEN, response.text)

        return DeliveryResult.failure(
            DeliveryErrorKind.TRANSIENT,
            f'Push endpoint returned HTTP {response.status_code}.',
        )

    def close(self) -> None:
        self._client.close()


def _is_invalid_token_response(response: httpx.Response) -> bool:
    if response.status_code == 404:
        return True
    if response.status_code != 400:
        return False

    try:
        error = response.json().get('error', {})
    except ValueError:
        return False

    details = error.get('details') or []
    error_codes = {detail.get('errorCode') for detail in details if isinstance(detail, dict)}
    return bool(error_codes & _INVALID_TOKEN_ERROR_CODES)


_sender_lock = Lock()
_default_sender: HttpPushSender | None = None


def get_sender() -> NotificationSender:
    global _default_sender

    if _default_sender is not None:
        return _default_sender

    with _sender_lock:
        if _default_sender is None:
            _default_sender = HttpPushSender()
    return _default_sender


@dataclass(frozen=True)
class PushMessage:
    key: Hashable
    token: str
    title: str
    body: str


@dataclass(frozen=True)
class DeliveryOutcome:
    message: PushMessage
    result: DeliveryResult


def _send_one(sender: NotificationSender, message: PushMessage) -> DeliveryOutcome:
    try:
        result = sender.send(message.token, message.title, message.body)
    except Exception as exc:
        logger.exception('Push delivery for %s raised unexpectedly.', message.key)
        result = DeliveryResult.failure(DeliveryErrorKind.TRANSIENT, str(exc))
    return DeliveryOutcome(message=message, result=result)


def deliver_all(
    sender: NotificationSender,
    messages: Iterable[PushMessage],
    max_workers: int | None = None,
) -> list[DeliveryOutcome]:
    """
    Send every message concurrently and wait for all of them.

    Outcomes come back in input order. A failure of one message never
    affects another; exceptions raised by the sender are recorded as
    transient failures.
    """
    pending = list(messages)
    if not pending:
        return []

    workers = max(1, min(max_workers or config.NOTIFICATION_MAX_WORKERS, len(pending)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix='push') as pool:
        return list(pool.map(lambda message: _send_one(sender, message), pending))


def clear_notification_token(db: Session, user_id: int) -> None:
    user = db.get(User, user_id)
    if user is not None and user.notification_token:
        user.notification_token = None
        logger.info('Removed invalid notification token for user %s.', user_id)


def notify_user(
    db: Session,
    sender: NotificationSender,
    user_id: int | None,
    title: str,
    body: str,
    context: str,
) -> DeliveryResult | None:
    """Send one notification to a user; returns None when there is nobody to notify."""
    if user_id is None:
        return None

    user = db.get(User, user_id)
    if user is None or not user.notification_token:
        logger.debug('No notification token for user %s, skipping %s.', user_id, context)
        return None

    outcome = _send_one(sender, PushMessage(key=context, token=user.notification_token, title=title, body=body))
    if outcome.result.ok:
        logger.info('Sent %s to user %s.', context, user_id)
    elif outcome.result.error_kind == DeliveryErrorKind.INVALID_TOKEN:
        logger.warning('Invalid notification token while sending %s to user %s.', context, user_id)
        clear_notification_token(db, user_id)
        db.commit()
    else:
        logger.error('Failed to send %s to user %s: %s', context, user_id, outcome.result.detail)

    return outcome.result

# app/services/push_provider.py

"""
Push provider contract and its Firebase Cloud Messaging implementation.

The firebase-admin SDK is blocking; callers run `send_one` / `send_batch`
through `asyncio.to_thread` with a timeout (see notification_service).
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

import firebase_admin
from firebase_admin import credentials, exceptions as fb_exceptions, messaging

from app.core.config import settings

NOTIFICATION_PREFIX = "College360x"


@dataclass
class PushSendResult:
    success: bool
    invalid_token: bool = False
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class PushBatchResult:
    success_count: int = 0
    failure_count: int = 0
    results: List[PushSendResult] = field(default_factory=list)


class PushProvider:
    """Base provider; also the disabled provider when FCM is not configured."""

    enabled = False

    def send_one(self, token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> PushSendResult:
        return PushSendResult(success=False, error="Push provider not configured")

    def send_batch(self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, Any]] = None) -> PushBatchResult:
        results = [self.send_one(t, title, body, data) for t in tokens]
        ok = sum(1 for r in results if r.success)
        return PushBatchResult(success_count=ok, failure_count=len(results) - ok, results=results)


def _stringify(data: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # FCM data payload values must be strings
    out: Dict[str, str] = {}
    for key, value in (data or {}).items():
        if value is None:
            continue
        out[str(key)] = value if isinstance(value, str) else json.dumps(value, default=str)
    link = out.get("link", "/")
    out.setdefault("link", link)
    out.setdefault("click_action", link)
    return out


def _is_invalid_token_error(exc: Exception) -> bool:
    """True only when FCM blames the token itself, never the message."""
    if isinstance(exc, (messaging.UnregisteredError, messaging.SenderIdMismatchError)):
        return True
    # INVALID_ARGUMENT also covers oversized or malformed messages
    if isinstance(exc, fb_exceptions.InvalidArgumentError):
        return "registration token" in str(exc).lower()
    return False


class FcmPushProvider(PushProvider):

    enabled = True

    def __init__(self, app: "firebase_admin.App", frontend_url: str):
        self._app = app
        self._icon_url = f"{frontend_url.rstrip('/')}/weblogo.jpg"

    def _configs(self, title: str, body: str, link: str):
        full_title = f"{NOTIFICATION_PREFIX}: {title}"
        return dict(
            notification=messaging.Notification(title=full_title, body=body),
            android=messaging.AndroidConfig(
                notification=messaging.AndroidNotification(
                    icon="logo",
                    sound="default",
                    channel_id="college360x_notifications",
                    image=self._icon_url,
                )
            ),
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    title=full_title,
                    body=body,
                    icon=self._icon_url,
                    badge=self._icon_url,
                    require_interaction=False,
                ),
                fcm_options=messaging.WebpushFCMOptions(link=link),
                headers={"Urgency": "normal"},
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1))
            ),
        )

    def send_one(self, token, title, body, data=None) -> PushSendResult:
        payload = _stringify(data)
        message = messaging.Message(token=token, data=payload, **self._configs(title, body, payload["link"]))
        try:
            message_id = messaging.send(message, app=self._app)
            return PushSendResult(success=True, message_id=message_id)
        except fb_exceptions.FirebaseError as e:
            logger.warning(f"FCM send failed ({e.code}): {e}")
            return PushSendResult(success=False, invalid_token=_is_invalid_token_error(e), error=str(e))

    def send_batch(self, tokens, title, body, data=None) -> PushBatchResult:
        if not tokens:
            return PushBatchResult()

        payload = _stringify(data)
        message = messaging.MulticastMessage(tokens=list(tokens), data=payload, **self._configs(title, body, payload["link"]))
        response = messaging.send_each_for_multicast(message, app=self._app)

        results = []
        for resp in response.responses:
            if resp.success:
                results.append(PushSendResult(success=True, message_id=resp.message_id))
            else:
                exc = resp.exception
                results.append(PushSendResult(
                    success=False,
                    invalid_token=exc is not None and _is_invalid_token_error(exc),
                    error=str(exc) if exc else None,
                ))
        return PushBatchResult(
            success_count=response.success_count,
            failure_count=response.failure_count,
            results=results,
        )


def build_push_provider() -> PushProvider:
    """
    FCM when credentials are configured (raw JSON env first, then a file);
    otherwise a disabled provider so the app keeps working without push.
    """
    cert = None
    try:
        if settings.FIREBASE_SERVICE_ACCOUNT:
            cert = credentials.Certificate(json.loads(settings.FIREBASE_SERVICE_ACCOUNT))
        elif settings.FIREBASE_CREDENTIALS_FILE:
            cert = credentials.Certificate(settings.FIREBASE_CREDENTIALS_FILE)
    except (ValueError, OSError) as e:
        logger.error(f"❌ Invalid Firebase credentials, push disabled: {e}")
        return PushProvider()

    if cert is None:
        logger.warning("⚠️ Firebase credentials not set. Push notifications disabled.")
        return PushProvider()

    try:
        app = firebase_admin.get_app()
    except ValueError:
        app = firebase_admin.initialize_app(cert)

    logger.info("✅ Firebase Admin SDK initialized")
    return FcmPushProvider(app, settings.FRONTEND_URL)

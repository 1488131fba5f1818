"""Products-ready push notifications over APNs.

Sends one alert per registered device of the user once a discovery job
completes. Delivery is best effort: every failure is logged and counted,
never raised to the caller.
"""

import base64
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import jwt
from pydantic import BaseModel, Field

from app.config import Settings
from app.db.gift_store import DeviceToken, GiftStore
from app.logging_config import mask_token

logger = logging.getLogger(__name__)

PRODUCTION_HOST = "https://api.push.apple.com"
SANDBOX_HOST = "https://api.sandbox.push.apple.com"

# Provider tokens are valid for an hour; refresh well before that
TOKEN_TTL_S = 50 * 60


class NotificationReport(BaseModel):
    sent: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


class Notifier(ABC):

    @abstractmethod
    async def notify(
        self,
        owner_id: str,
        category: str,
        result_count: int,
        category_id: Optional[str] = None,
    ) -> NotificationReport:
        """Tell `owner_id` that `result_count` products were found for `category`."""
        ...


def products_ready_payload(category: str, result_count: int, category_id: Optional[str]) -> Dict[str, Any]:
    plural = "" if result_count == 1 else "s"
    return {
        "aps": {
            "alert": {
                "title": "Products Found! 🎁",
                "body": f'We found {result_count} great option{plural} for "{category}". Tap to see them!',
            },
            "sound": "default",
            "badge": 1,
            "thread-id": "products-ready",
        },
        "notification_type": "products_ready",
        "general_gift_idea_id": category_id,
        "product_count": result_count,
    }


class ApnsNotifier(Notifier):

    def __init__(self, settings: Settings, store: GiftStore, http_client: Optional[httpx.AsyncClient] = None):
        self._key_id = settings.apns_key_id
        self._team_id = settings.apns_team_id
        self._bundle_id = settings.apns_bundle_id
        self._key_base64 = settings.apns_key_base64
        self._environment = settings.apns_environment
        self._store = store
        self._http = http_client
        self._token: Optional[str] = None
        self._token_expiry = 0.0

    @property
    def is_configured(self) -> bool:
        return bool(self._key_base64 and self._key_id and self._team_id and self._bundle_id)

    async def notify(
        self,
        owner_id: str,
        category: str,
        result_count: int,
        category_id: Optional[str] = None,
    ) -> NotificationReport:
        report = NotificationReport()
        if not self.is_configured:
            logger.info("[APNS] Not configured - skipping products ready notification")
            return report

        try:
            tokens = await self._store.fetch_device_tokens(owner_id)
        except Exception as e:
            logger.error("[APNS] Error fetching device tokens for user %s: %s", owner_id, e)
            report.errors.append(f"Failed to fetch device tokens: {e}")
            return report

        if not tokens:
            logger.info("[APNS] No device tokens found for user %s", owner_id)
            return report

        payload = products_ready_payload(category, result_count, category_id)
        logger.info("[APNS] Sending products ready notification to %d device(s)", len(tokens))
        for token in tokens:
            ok, reason = await self.send(token, payload)
            if ok:
                report.sent += 1
            else:
                report.failed += 1
                report.errors.append(f"{mask_token(token.device_token)}: {reason}")
                logger.warning("[APNS] Failed to send to %s: %s", mask_token(token.device_token), reason)

        logger.info("[APNS] Products ready notification: %d sent, %d failed", report.sent, report.failed)
        return report

    async def send(self, token: DeviceToken, payload: Dict[str, Any]):
        """POST one notification. Returns (ok, reason)."""
        sandbox = token.is_sandbox or self._environment != "production"
        url = f"{SANDBOX_HOST if sandbox else PRODUCTION_HOST}/3/device/{token.device_token}"
        try:
            headers = {
                "authorization": f"bearer {self._provider_token()}",
                "apns-topic": self._bundle_id,
                "apns-push-type": "alert",
                "apns-priority": "10",
                "apns-expiration": "0",
            }
            response = await self._client().post(url, json=payload, headers=headers)
        except Exception as e:
            return False, str(e) or type(e).__name__

        if response.status_code == 200:
            return True, None
        try:
            reason = response.json().get("reason", "Unknown error")
        except ValueError:
            reason = "Unknown error"
        return False, f"{response.status_code} {reason}"

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(http2=True, timeout=10.0)
        return self._http

    def _provider_token(self) -> str:
        now = time.time()
        if self._token and now < self._token_expiry:
            return self._token

        private_key = base64.b64decode(self._key_base64).decode("utf-8")
        self._token = jwt.encode(
            {"iss": self._team_id, "iat": int(now)},
            private_key,
            algorithm="ES256",
            headers={"kid": self._key_id},
        )
        self._token_expiry = now + TOKEN_TTL_S
        logger.info("[APNS] Generated new provider token")
        return self._token

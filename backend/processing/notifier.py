import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from config import ALERT_KIND, SYSTEM_NAME
from schemas.messages import AlertPayload

logger = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class SendResult:
    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> "SendResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "SendResult":
        return cls(ok=False, reason=reason)


class NotificationSender(Protocol):
    """Delivers one emergency alert. At most once per call, no retries."""

    async def send(self, destination: str, payload: AlertPayload) -> SendResult: ...


def build_alert_payload(triggered_at: datetime) -> AlertPayload:
    stamp = triggered_at.strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    return AlertPayload(
        triggered_at=triggered_at,
        alert_kind=ALERT_KIND,
        system_name=SYSTEM_NAME,
        message=(
            f"EMERGENCY ALERT triggered at {stamp}. The user has blinked 5 times in rapid "
            "succession, indicating they may need immediate assistance. Please contact "
            "them immediately to check on their wellbeing."
        ),
    )


class LogNotificationSender:
    """Sender that only writes the alert to the server log."""

    async def send(self, destination: str, payload: AlertPayload) -> SendResult:
        logger.warning(
            f"[Notifier] EMERGENCY to {destination}: {payload.alert_kind} "
            f"at {payload.triggered_at.isoformat()}"
        )
        return SendResult.success()

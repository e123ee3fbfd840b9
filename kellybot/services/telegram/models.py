"""Telegram alert models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class NotificationResult(BaseModel):
    """Outcome of one alert delivery."""

    success: bool
    recipient: str
    message_id: int | None = None
    attempts: int = 1
    error: str | None = None
    sent_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        if self.success:
            return f"Alert sent to {self.recipient} (msg_id: {self.message_id})"
        return f"Alert to {self.recipient} failed after {self.attempts} attempt(s): {self.error}"

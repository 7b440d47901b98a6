"""Schemas for alert administration endpoints."""
from typing import Literal

from pydantic import BaseModel, Field

from opswatch.models.domain import Severity, SeverityField


class ThresholdUpdateRequest(BaseModel):
    """Payload for changing one boundary of a metric threshold."""

    level: Literal["warning", "critical"]
    value: float = Field(..., ge=0)


class CooldownUpdateRequest(BaseModel):
    """Payload for changing the global alert cooldown."""

    cooldown_ms: int = Field(..., ge=0)


class ManualAlertRequest(BaseModel):
    """Payload for the test-alert endpoint."""

    severity: SeverityField = Severity.INFO


class DispatchResult(BaseModel):
    """Outcome of a manually triggered alert."""

    sent: bool
    message: str

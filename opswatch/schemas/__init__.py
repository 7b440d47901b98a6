"""Pydantic schemas exposed by the application API."""
from .alerts import (
    CooldownUpdateRequest,
    DispatchResult,
    ManualAlertRequest,
    ThresholdUpdateRequest,
)

__all__ = [
    "CooldownUpdateRequest",
    "DispatchResult",
    "ManualAlertRequest",
    "ThresholdUpdateRequest",
]

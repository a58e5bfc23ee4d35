"""
Domain: Device entity.

A Device is identified by (model, storage) and is immutable once created.
Family and type are derived from the marketing model name:

- "iPhone 13 Pro Max" -> family "iPhone 13", type Pro Max
- "iPhone 14 Pro"     -> family "iPhone 14", type Pro
- "iPhone 12 Mini"    -> family "iPhone 12", type base
- "iPhone 6s Plus"    -> family "iPhone 6s", type base
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from uuid import UUID

_VARIANT_SUFFIXES = (" Pro Max", " Pro", " Plus", " Mini", " mini")


class DeviceType(str, Enum):
    PRO_MAX = "Pro Max"
    PRO = "Pro"
    BASE = "base"

    @staticmethod
    def for_model(model: str) -> "DeviceType":
        if "Pro Max" in model:
            return DeviceType.PRO_MAX
        if "Pro" in model:
            return DeviceType.PRO
        return DeviceType.BASE


def family_for_model(model: str) -> str:
    """Strip the variant suffix so all variants of a generation share a family."""

    name = model.strip()
    for suffix in _VARIANT_SUFFIXES:
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name


@dataclass(frozen=True, slots=True)
class Device:
    model: str
    storage: str
    family: str
    type: DeviceType
    device_id: Optional[UUID] = None

    @staticmethod
    def from_model(model: str, storage: str) -> "Device":
        return Device(
            model=model,
            storage=storage,
            family=family_for_model(model),
            type=DeviceType.for_model(model),
        )

    @property
    def key(self) -> tuple[str, str]:
        """Deduplication key."""
        return (self.model, self.storage)

    @property
    def display_name(self) -> str:
        return f"{self.model} {self.storage}"

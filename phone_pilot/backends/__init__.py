from phone_pilot.backends.accessibility import AccessibilityBridgeBackend
from phone_pilot.backends.adb import ADBHelper, AdbBackend
from phone_pilot.backends.base import (
    KEY_CODES,
    Capability,
    CapabilityBackend,
    Privilege,
    RawScreen,
    TextPayload,
)
from phone_pilot.backends.registry import BackendRegistry

__all__ = [
    "AccessibilityBridgeBackend",
    "ADBHelper",
    "AdbBackend",
    "KEY_CODES",
    "Capability",
    "CapabilityBackend",
    "Privilege",
    "RawScreen",
    "TextPayload",
    "BackendRegistry",
]

from __future__ import annotations

from noteai.services.device_contacts.bridge import DeviceContact, DeviceContactBridge

__all__ = ["DeviceContact", "DeviceContactBridge"]

# notificationhubs/decoder.py
"""Decode hub response bodies (Atom feeds / entries) into registrations."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import Protocol

from .const import DEFAULT_REGISTRATION_NAME
from .exceptions import RegistrationDecodeError
from .registration import Registration, Template

_LOGGER = logging.getLogger(__name__)

_DESCRIPTION_SUFFIX = "RegistrationDescription"


class Decoder(Protocol):
    """Parses a response body into zero or more registrations."""

    def decode(self, data: bytes) -> list[Registration]:
        """Return every registration found in `data`."""


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _child_text(element: ET.Element, name: str) -> str | None:
    for child in element:
        if _local_name(child.tag) == name:
            return (child.text or "").strip()
    return None


class RegistrationDecoder:
    """Default decoder for the XML bodies returned by the REST API."""

    def decode(self, data: bytes) -> list[Registration]:
        if not data or not data.strip():
            return []

        try:
            root = ET.fromstring(data)
        except ET.ParseError as err:
            raise RegistrationDecodeError(f"Malformed registration payload: {err}") from err

        registrations = [
            self._registration_from(element)
            for element in root.iter()
            if _local_name(element.tag).endswith(_DESCRIPTION_SUFFIX)
        ]
        _LOGGER.debug("Decoded %d registration(s)", len(registrations))
        return registrations

    @staticmethod
    def _registration_from(element: ET.Element) -> Registration:
        template_name = _child_text(element, "TemplateName")
        template = None
        if template_name:
            template = Template(
                name=template_name,
                body=_child_text(element, "BodyTemplate") or "",
                expiry=_child_text(element, "Expiry") or None,
            )

        tags_text = _child_text(element, "Tags") or ""
        return Registration(
            id=_child_text(element, "RegistrationId") or "",
            name=template_name or DEFAULT_REGISTRATION_NAME,
            device_token=(_child_text(element, "DeviceToken") or "").lower(),
            tags=[tag.strip() for tag in tags_text.split(",") if tag.strip()],
            etag=_child_text(element, "ETag") or None,
            expiration_time=_child_text(element, "ExpirationTime") or None,
            template=template,
        )

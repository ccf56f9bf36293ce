# notificationhubs/registration.py
"""Registration model and Atom payload builders."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from xml.sax.saxutils import escape

from ._typing import JSONDict
from .const import ATOM_NS, DEFAULT_REGISTRATION_NAME, SERVICEBUS_NS, XML_SCHEMA_INSTANCE_NS
from .exceptions import InvalidTemplateNameError


@dataclass(slots=True)
class Template:
    """A named APNs body template."""

    name: str
    body: str
    expiry: str | None = None


@dataclass(slots=True)
class Registration:
    """A registration as last confirmed by the hub.

    Attributes:
        id: Server-assigned registration id; empty until first confirmed.
        name: Logical cache key (`$Default` or the template name).
        device_token: Hex device token at last sync.
        tags: Tags bound to the registration.
        etag: Server ETag, if reported.
        expiration_time: Server expiration timestamp, if reported.
        template: Body template for template registrations.
    """

    id: str = ""
    name: str = DEFAULT_REGISTRATION_NAME
    device_token: str = ""
    tags: list[str] = field(default_factory=list)
    etag: str | None = None
    expiration_time: str | None = None
    template: Template | None = None

    @property
    def is_confirmed(self) -> bool:
        return bool(self.id)

    def to_dict(self) -> JSONDict:
        data: JSONDict = {
            "id": self.id,
            "name": self.name,
            "device_token": self.device_token,
            "tags": list(self.tags),
            "etag": self.etag,
            "expiration_time": self.expiration_time,
        }
        if self.template is not None:
            data["template"] = {
                "name": self.template.name,
                "body": self.template.body,
                "expiry": self.template.expiry,
            }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Registration:
        raw_template = data.get("template")
        template = None
        if isinstance(raw_template, Mapping):
            template = Template(
                name=str(raw_template.get("name", "")),
                body=str(raw_template.get("body", "")),
                expiry=raw_template.get("expiry"),
            )
        return cls(
            id=str(data.get("id", "")),
            name=str(data.get("name", DEFAULT_REGISTRATION_NAME)),
            device_token=str(data.get("device_token", "")),
            tags=[str(tag) for tag in data.get("tags") or []],
            etag=data.get("etag"),
            expiration_time=data.get("expiration_time"),
            template=template,
        )

    @staticmethod
    def payload_for_device_token(device_token: str, tags: Iterable[str] = ()) -> str:
        """Return the Atom entry for a plain APNs registration."""
        return _entry(
            "AppleRegistrationDescription",
            _tags_element(tags) + f"<DeviceToken>{escape(device_token)}</DeviceToken>",
        )

    @staticmethod
    def payload_for_template(
        device_token: str,
        template: Template,
        priority: str | None = None,
        tags: Iterable[str] = (),
    ) -> str:
        """Return the Atom entry for an APNs template registration."""
        inner = _tags_element(tags)
        inner += f"<DeviceToken>{escape(device_token)}</DeviceToken>"
        inner += f"<BodyTemplate><![CDATA[{_cdata_safe(template.body)}]]></BodyTemplate>"
        if template.expiry:
            inner += f"<Expiry>{escape(template.expiry)}</Expiry>"
        if priority:
            inner += f"<Priority>{escape(priority)}</Priority>"
        inner += f"<TemplateName>{escape(template.name)}</TemplateName>"
        return _entry("AppleTemplateRegistrationDescription", inner)


def validate_template_name(name: str) -> InvalidTemplateNameError | None:
    """Return an error describing why `name` is unusable, or None if valid."""
    if not name or not name.strip():
        return InvalidTemplateNameError(name, "must not be empty")
    if name == DEFAULT_REGISTRATION_NAME:
        return InvalidTemplateNameError(name, f"{DEFAULT_REGISTRATION_NAME} is reserved")
    if ":" in name:
        return InvalidTemplateNameError(name, "must not contain ':'")
    return None


def _tags_element(tags: Iterable[str]) -> str:
    joined = ",".join(tag for tag in tags if tag)
    return f"<Tags>{escape(joined)}</Tags>" if joined else ""


def _cdata_safe(text: str) -> str:
    return text.replace("]]>", "]]]]><![CDATA[>")


def _entry(description: str, inner: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<entry xmlns="{ATOM_NS}">'
        '<content type="application/xml">'
        f'<{description} xmlns:i="{XML_SCHEMA_INSTANCE_NS}" xmlns="{SERVICEBUS_NS}">'
        f"{inner}"
        f"</{description}>"
        "</content>"
        "</entry>"
    )

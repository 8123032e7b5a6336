"""SOAP 1.1 envelope encoding and decoding for ``urn:vim25`` operations.

Only the subset needed to carry plain Python values is handled: mappings become
nested elements, sequences become repeated elements, and
:class:`ManagedObjectReference` values become elements with a ``type``
attribute. Responses decode the other way round; leaf values stay strings
because no schema is consulted. Responses are parsed with defusedxml, so
DTDs and entity declarations are rejected.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Any, Mapping

import defusedxml
import defusedxml.ElementTree as SafeET

from .errors import ParseError, SessionExpiredError, SoapFaultError, is_session_expired_message
from .types import ManagedObjectReference

SOAP_ENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"
VIM25_NS = "urn:vim25"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"

ET.register_namespace("soapenv", SOAP_ENV_NS)
ET.register_namespace("vim25", VIM25_NS)
ET.register_namespace("xsi", XSI_NS)


def build_envelope(operation: str, args: Mapping[str, Any] | None = None) -> bytes:
    envelope = ET.Element(f"{{{SOAP_ENV_NS}}}Envelope")
    body = ET.SubElement(envelope, f"{{{SOAP_ENV_NS}}}Body")
    request = ET.SubElement(body, f"{{{VIM25_NS}}}{operation}")
    for name, value in (args or {}).items():
        if name == "_this" and value is not None:
            value = ManagedObjectReference.coerce(value)
        _encode(request, name, value)
    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def parse_envelope(raw: bytes | str) -> dict[str, Any]:
    """Decode a response envelope into the operation's result mapping.

    Raises:
        SoapFaultError: the Body carries a Fault.
        SessionExpiredError: the Fault says the session is not authenticated.
        ParseError: the payload is not a SOAP envelope.
    """
    text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
    try:
        root = SafeET.fromstring(raw, forbid_dtd=True)
    except SafeET.ParseError as exc:
        raise ParseError(f"Invalid SOAP response: {exc}", body=text) from exc
    except defusedxml.DefusedXmlException as exc:
        raise ParseError(f"Refusing SOAP response with DTD or entities: {exc}", body=text) from exc

    body = root.find(f"{{{SOAP_ENV_NS}}}Body")
    if body is None:
        raise ParseError("SOAP envelope has no Body", body=text)

    payload = next(iter(body), None)
    if payload is None:
        return {}
    if _local_name(payload.tag) == "Fault":
        raise fault_from_element(payload, text)

    decoded = _decode(payload)
    return decoded if isinstance(decoded, dict) else {}


def fault_from_element(fault: ET.Element, raw: str) -> SoapFaultError:
    fault_code = _child_text(fault, "faultcode")
    fault_string = _child_text(fault, "faultstring") or "SOAP fault"
    detail = _child(fault, "detail")
    context = _decode(detail) if detail is not None else None
    error_cls = SessionExpiredError if is_session_expired_message(fault_string) else SoapFaultError
    return error_cls(fault_string, fault_code=fault_code, body=raw, context=context)


def _encode(parent: ET.Element, name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            _encode(parent, name, item)
        return

    elem = ET.SubElement(parent, f"{{{VIM25_NS}}}{name}")
    if isinstance(value, ManagedObjectReference):
        elem.set("type", value.type)
        elem.text = value.value
    elif isinstance(value, Mapping):
        for key, item in value.items():
            _encode(elem, key, item)
    elif isinstance(value, bool):
        elem.text = "true" if value else "false"
    else:
        elem.text = str(value)


def _decode(elem: ET.Element) -> Any:
    children = list(elem)
    if not children:
        text = (elem.text or "").strip()
        mo_type = elem.get("type")
        if mo_type is not None:
            return ManagedObjectReference(type=mo_type, value=text)
        return text

    decoded: dict[str, Any] = {}
    for child in children:
        key = _local_name(child.tag)
        value = _decode(child)
        if key not in decoded:
            decoded[key] = value
        elif isinstance(decoded[key], list):
            decoded[key].append(value)
        else:
            decoded[key] = [decoded[key], value]
    return decoded


def _child(elem: ET.Element, name: str) -> ET.Element | None:
    for child in elem:
        if _local_name(child.tag) == name:
            return child
    return None


def _child_text(elem: ET.Element, name: str) -> str | None:
    child = _child(elem, name)
    if child is None:
        return None
    return (child.text or "").strip()


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


__all__ = ["SOAP_ENV_NS", "VIM25_NS", "build_envelope", "fault_from_element", "parse_envelope"]

"""
Application key extraction from an incident's activity stream.

The four identifiers (application id, Emirates ID, presale number, chassis
number) usually appear in integration log entries, either as ``key: value``
text or inside an escaped JSON ``payload`` string.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

from core.models import ApplicationKeys, Detail

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")
_PAYLOAD = re.compile(r'payload"\s*:\s*"(\{.+?\})"', re.IGNORECASE)

_APPLICATION_ID = (
    re.compile(r'(?:applicationId|ApplicationId|ApplicationID)\s*[:=]\s*"?(\d{4,})"?', re.I),
    re.compile(r'ApplicationId\\?["\']?\s*[:=]\s*\\?"?(\d{4,})', re.I),
)
_EMIRATES_ID = (
    re.compile(r'(?:emiratesId|EmiratesId|EmiratesID)\s*[:=]\s*"?(\d{5,})"?', re.I),
    re.compile(r'EmiratesId\\?["\']?\s*[:=]\s*\\?"?(\d{5,})', re.I),
)
_REF_KEY = (
    re.compile(r'RefKey\s*[:=]\s*"?(\d{3,})"?', re.I),
    re.compile(r'RefKey\\?["\']?\s*[:=]\s*\\?"?(\d{3,})', re.I),
)
_PRESALE_NO = (
    re.compile(r'presaleNo\s*[:=]\s*"?(\d{3,})"?', re.I),
    re.compile(r'presaleNo\\?["\']?\s*[:=]\s*\\?"?(\d{3,})', re.I),
)
_SELLER_CHASSIS_NO = (
    re.compile(r'sellerChassisNo\s*[:=]\s*"?([A-Za-z0-9]+)"?', re.I),
    re.compile(r'sellerChassisNo\\?["\']?\s*[:=]\s*\\?"?([A-Za-z0-9]+)', re.I),
)
_CHASSIS_NO = (
    re.compile(r'(?:chassisNo|ChassisNo)\s*[:=]\s*"?([A-Za-z0-9]+)"?', re.I),
    re.compile(r'(?:chassisNo|ChassisNo)\\?["\']?\s*[:=]\s*\\?"?([A-Za-z0-9]+)', re.I),
)

# Payload field names per key, in lookup order.
PAYLOAD_FIELDS: Dict[str, Sequence[str]] = {
    "application_id": ("applicationId", "ApplicationId", "ApplicationID"),
    "emirates_id": ("emiratesId", "EmiratesId", "EmiratesID"),
    "presale_no": ("RefKey", "presaleNo", "preAppSerialNo", "PresaleNo"),
    "chassis_no": ("sellerChassisNo", "chassisNo", "ChassisNo"),
}


def _unescape(text: str) -> str:
    return text.replace('\\"', '"').replace("\\\\", "\\")


def combined_text(detail: Optional[Detail]) -> str:
    """Activity text plus ``"key value"`` record pairs, whitespace collapsed."""
    if detail is None:
        return ""
    parts: List[str] = []
    for entry in detail.activity:
        if entry.text:
            parts.append(entry.text)
        for record in entry.records:
            if record.key or record.value:
                parts.append(f"{record.key} {record.value}".strip())
    return _WS.sub(" ", " ".join(parts))


class _Matcher:
    """Searches the unescaped text first, then the raw text."""

    def __init__(self, combined: str) -> None:
        self.combined = combined
        self.unescaped = _unescape(combined)

    def first(self, patterns: Sequence["re.Pattern[str]"]) -> str:
        for pattern in patterns:
            match = pattern.search(self.unescaped) or pattern.search(self.combined)
            if match and match.group(1):
                return match.group(1)
        return ""


def parse_payloads(combined: str) -> List[Dict[str, Any]]:
    """Parse embedded ``payload":"{...}"`` JSON objects; unparsable ones are skipped."""
    payloads: List[Dict[str, Any]] = []
    for match in _PAYLOAD.finditer(combined):
        try:
            parsed = json.loads(_unescape(match.group(1)))
        except ValueError:
            continue
        if isinstance(parsed, dict):
            payloads.append(parsed)
    return payloads


def _payload_value(payload: Dict[str, Any], fields: Sequence[str]) -> str:
    for field in fields:
        value = payload.get(field)
        if value:
            return str(value)
    return ""


def keys_from_payloads(payloads: Sequence[Dict[str, Any]]) -> Dict[str, str]:
    # First payload that defines a field wins, even when later ones disagree.
    found = {name: "" for name in PAYLOAD_FIELDS}
    for payload in payloads:
        for name, fields in PAYLOAD_FIELDS.items():
            if not found[name]:
                found[name] = _payload_value(payload, fields)
    return found


def extract_keys(detail: Optional[Detail]) -> ApplicationKeys:
    """
    Resolve :class:`ApplicationKeys` from a scraped detail.

    Pure and total: the same detail always yields the same keys and nothing
    is raised; keys that cannot be found are empty strings.
    """
    combined = combined_text(detail)
    if not combined:
        return ApplicationKeys()

    matcher = _Matcher(combined)
    fallback = keys_from_payloads(parse_payloads(combined))

    return ApplicationKeys(
        application_id=matcher.first(_APPLICATION_ID) or fallback["application_id"],
        emirates_id=matcher.first(_EMIRATES_ID) or fallback["emirates_id"],
        presale_no=(
            matcher.first(_REF_KEY) or matcher.first(_PRESALE_NO) or fallback["presale_no"]
        ),
        chassis_no=(
            matcher.first(_SELLER_CHASSIS_NO) or matcher.first(_CHASSIS_NO) or fallback["chassis_no"]
        ),
    )

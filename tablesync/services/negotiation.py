"""Content negotiation between the JSON and XML property list representations."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import StrEnum

logger = logging.getLogger(__name__)

MEDIA_APPLICATION_JSON = "application/json"
MEDIA_TEXT_XML_UTF8 = "text/xml; charset=utf-8"
MEDIA_APPLICATION_XML_UTF8 = "application/xml; charset=utf-8"


class Representation(StrEnum):
    JSON = "json"
    XML = "xml"


@dataclass(frozen=True)
class MediaRange:
    """One entry of an Accept header."""

    type: str
    subtype: str
    params: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def weight(self) -> float:
        """Quality value; absent or unparseable ``q`` counts as 1.0, never 0."""
        quotient = self.params.get("q")
        if quotient is None:
            return 1.0
        try:
            weight = float(quotient)
        except ValueError:
            return 1.0
        return weight if math.isfinite(weight) else 1.0

    def is_compatible(self, media_type: str) -> bool:
        """Wildcard-aware match against a concrete ``type/subtype``."""
        other_type, _, other_subtype = media_type.partition(";")[0].strip().partition("/")
        if self.type == "*" or other_type == "*":
            return True
        if self.type != other_type:
            return False
        return self.subtype == "*" or other_subtype == "*" or self.subtype == other_subtype


@dataclass(frozen=True)
class NegotiatedType:
    representation: Representation
    media_type: str


def parse_accept(header: str | None) -> list[MediaRange]:
    """Split an Accept header into media ranges, skipping malformed entries."""
    if not header:
        return []
    ranges: list[MediaRange] = []
    for item in header.split(","):
        pieces = [piece.strip() for piece in item.split(";")]
        full_type = pieces[0].lower()
        if full_type == "*":
            full_type = "*/*"
        media_type, sep, subtype = full_type.partition("/")
        if not sep or not media_type or not subtype:
            if full_type:
                logger.debug("Ignoring malformed media range %r", item)
            continue
        params: dict[str, str] = {}
        for piece in pieces[1:]:
            name, eq, value = piece.partition("=")
            if eq:
                params[name.strip().lower()] = value.strip().strip('"')
        ranges.append(MediaRange(type=media_type, subtype=subtype, params=params))
    return ranges


def choose_representation(accept_header: str | None) -> NegotiatedType:
    """Pick JSON or XML for a property list.

    Tracks the highest weight among JSON-compatible ranges (wildcards count as
    JSON) and, separately, among XML-compatible ranges. JSON wins ties.
    """
    max_json = 0.0
    max_other = 0.0
    xml_range: MediaRange | None = None
    for media_range in parse_accept(accept_header):
        weight = media_range.weight
        if media_range.is_compatible(MEDIA_APPLICATION_JSON):
            max_json = max(max_json, weight)
        elif media_range.is_compatible(MEDIA_TEXT_XML_UTF8) or media_range.is_compatible(
            MEDIA_APPLICATION_XML_UTF8
        ):
            if weight > max_other:
                max_other = weight
                xml_range = media_range

    if max_json >= max_other or xml_range is None:
        return NegotiatedType(Representation.JSON, MEDIA_APPLICATION_JSON)
    media_type = MEDIA_TEXT_XML_UTF8 if xml_range.type == "text" else MEDIA_APPLICATION_XML_UTF8
    return NegotiatedType(Representation.XML, media_type)

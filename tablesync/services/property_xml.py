"""XML representation of property lists.

Format::

    <propertyEntryList>
      <propertyEntry>
        <partition>Table</partition><aspect>default</aspect>
        <key>displayName</key><type>string</type><value>Visits</value>
      </propertyEntry>
    </propertyEntryList>

A missing ``<value>`` element means a null value.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import TYPE_CHECKING

from tablesync.exceptions import RequestBodyError
from tablesync.services.property_service import PropertyEntry

if TYPE_CHECKING:
    from collections.abc import Sequence

LIST_TAG = "propertyEntryList"
ENTRY_TAG = "propertyEntry"
_REQUIRED_FIELDS = ("partition", "aspect", "key", "type")


def render_property_list(entries: Sequence[PropertyEntry]) -> bytes:
    root = ET.Element(LIST_TAG)
    for entry in entries:
        element = ET.SubElement(root, ENTRY_TAG)
        for name in _REQUIRED_FIELDS:
            ET.SubElement(element, name).text = getattr(entry, name)
        if entry.value is not None:
            ET.SubElement(element, "value").text = entry.value
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)


def parse_property_list(body: bytes) -> list[PropertyEntry]:
    """Parse an XML property list body. Raises RequestBodyError when malformed."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise RequestBodyError(f"Malformed property list XML: {exc}") from exc
    if root.tag != LIST_TAG:
        raise RequestBodyError(f"Expected <{LIST_TAG}> root element, got <{root.tag}>")

    entries: list[PropertyEntry] = []
    for position, element in enumerate(root, start=1):
        if element.tag != ENTRY_TAG:
            raise RequestBodyError(f"Unexpected element <{element.tag}> in property list")
        fields: dict[str, str] = {}
        for name in _REQUIRED_FIELDS:
            child = element.find(name)
            if child is None:
                raise RequestBodyError(f"Property entry {position} is missing <{name}>")
            fields[name] = child.text or ""
        value_element = element.find("value")
        value = None if value_element is None else (value_element.text or "")
        entries.append(PropertyEntry(value=value, **fields))
    return entries

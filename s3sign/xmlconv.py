"""Conversion between plain key/value trees and S3 XML bodies.

``to_xml`` capitalizes keys to form element names, so converting a tree to XML
and back returns the capitalized names rather than the original keys.
"""

import xml.etree.ElementTree as ET
from typing import Any, Dict, List
from xml.sax.saxutils import escape

XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'
S3_NAMESPACE = 'http://s3.amazonaws.com/doc/2006-03-01/'


def _element_name(key: str) -> str:
    return key[:1].upper() + key[1:]


def _leaf_text(value: Any) -> str:
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return escape(str(value))


def to_xml(tree: Dict[str, Any]) -> str:
    """Render tree as an XML document; the outermost element gets the S3 namespace"""
    parts: List[str] = [XML_DECLARATION]
    pending_ns = [True]

    def open_tag(name: str) -> str:
        if pending_ns[0]:
            pending_ns[0] = False
            return f'<{name} xmlns="{S3_NAMESPACE}">'
        return f"<{name}>"

    def emit(key: str, value: Any) -> None:
        name = _element_name(key)
        if isinstance(value, (list, tuple)):
            for item in value:
                emit(key, item)
            return
        parts.append(open_tag(name))
        if isinstance(value, dict):
            for k, v in value.items():
                emit(k, v)
        else:
            parts.append(_leaf_text(value))
        parts.append(f"</{name}>")

    for key, value in tree.items():
        emit(key, value)
    return ''.join(parts)


def _local_name(tag: str) -> str:
    return tag.rsplit('}', 1)[-1]


def _convert(element: ET.Element) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for child in element:
        name = _local_name(child.tag)
        value = _convert(child) if len(child) else (child.text or '')
        if name in result:
            existing = result[name]
            if not isinstance(existing, list):
                result[name] = existing = [existing]
            existing.append(value)
        else:
            result[name] = value
    return result


def from_xml(text: str) -> Dict[str, Any]:
    """
    Parse an XML document into a nested dict keyed by element tag names.

    Namespaces are dropped, repeated sibling elements become lists and leaf
    elements map to their text. Raises ``xml.etree.ElementTree.ParseError``
    on malformed input.
    """
    root = ET.fromstring(text.encode('utf-8') if isinstance(text, str) else text)
    value = _convert(root) if len(root) else (root.text or '')
    return {_local_name(root.tag): value}

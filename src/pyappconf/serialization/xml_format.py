from __future__ import annotations

import xml.etree.ElementTree as ET

from ..errors import SerializationError
from . import register_format
from .base import BaseFormat
from .tree import Node, Tree

ITEM_TAG = "item"
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'


def _build(parent: ET.Element, node: Node) -> None:
    if node is None:
        parent.set("nil", "true")
    elif isinstance(node, dict):
        parent.set("kind", "record")
        for name, child in node.items():
            _build(ET.SubElement(parent, name), child)
    elif isinstance(node, list):
        parent.set("kind", "list")
        for child in node:
            _build(ET.SubElement(parent, ITEM_TAG), child)
    else:
        parent.text = node


def _read(elem: ET.Element) -> Node:
    if elem.get("nil") == "true":
        return None
    kind = elem.get("kind")
    if kind == "record":
        return {child.tag: _read(child) for child in elem}
    if kind == "list":
        return [_read(child) for child in elem]
    return elem.text or ""


@register_format
class XmlFormat(BaseFormat):
    """Element-per-member XML."""

    name = "xml"
    suffixes = (".xml",)

    def dumps(self, tree: Tree, root_name: str) -> str:
        root = ET.Element(root_name)
        for name, node in tree.items():
            _build(ET.SubElement(root, name), node)
        ET.indent(root, space="   ")
        return XML_DECLARATION + ET.tostring(root, encoding="unicode")

    def loads(self, text: str) -> Tree:
        try:
            root = ET.fromstring(text)
        except ET.ParseError as exc:
            raise SerializationError(str(exc)) from exc
        return {child.tag: _read(child) for child in root}

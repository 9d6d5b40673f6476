"""In-place editing of XML configuration documents.

A document has one root element.  Each section is a direct child of the root
named after the section and holds ``<add key="..." value="..."/>`` entries.
Sections other than :data:`DEFAULT_SECTION` are declared in a
``<configSections>`` header that is kept as the root's first child::

    <configuration>
      <configSections>
        <section name="mySection" requirePermission="false" type="..."/>
      </configSections>
      <appSettings>
        <add key="Name" value="svc"/>
      </appSettings>
      <mySection>
        <add key="Retries" value="5"/>
      </mySection>
    </configuration>

When the root element lives in an XML namespace every structural element is
looked up and created in that namespace, and the root's prefix is kept when
the document is written back.
"""
from __future__ import annotations

import copy
import io
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from .errors import MissingStoreError, PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_SECTION = "appSettings"
ROOT_TAG = "configuration"
SECTIONS_TAG = "configSections"
ENTRY_TAG = "add"
SECTION_HANDLER = (
    "System.Configuration.NameValueSectionHandler,System,Version=1.0.3300.0, "
    "Culture=neutral, PublicKeyToken=b77a5c561934e089"
)


@dataclass(frozen=True)
class NamespaceContext:
    """Namespace URI and prefix of a document's root element."""

    uri: str = ""
    prefix: str = ""

    def qname(self, local: str) -> str:
        return f"{{{self.uri}}}{local}" if self.uri else local

    @classmethod
    def detect(cls, root: ET.Element, declared: list[tuple[str, str]]) -> NamespaceContext:
        tag = root.tag
        if not tag.startswith("{"):
            return cls()
        uri = tag[1:].partition("}")[0]
        prefix = next((p for p, u in declared if u == uri), "")
        return cls(uri, prefix)


def _root_declarations(data: bytes) -> list[tuple[str, str]]:
    declared: list[tuple[str, str]] = []
    for event, item in ET.iterparse(io.BytesIO(data), events=("start-ns", "start")):
        if event == "start":
            break
        declared.append(item)
    return declared


class ConfigDocument:
    """A mutable configuration document."""

    def __init__(self, root: ET.Element, ns: NamespaceContext | None = None) -> None:
        self.root = root
        self.ns = ns or NamespaceContext()

    # ----- construction -----

    @classmethod
    def new(cls) -> ConfigDocument:
        return cls(ET.Element(ROOT_TAG))

    @classmethod
    def from_bytes(cls, data: bytes) -> ConfigDocument:
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        try:
            parser.feed(data)
            root = parser.close()
            declared = _root_declarations(data)
        except ET.ParseError as exc:
            raise MissingStoreError(f"Malformed configuration document: {exc}") from exc
        return cls(root, NamespaceContext.detect(root, declared))

    @classmethod
    def load(cls, path: Path | str) -> ConfigDocument:
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise MissingStoreError(f"Cannot read {path}: {exc}") from exc
        return cls.from_bytes(data)

    @classmethod
    def load_or_new(cls, path: Path | str) -> ConfigDocument:
        try:
            return cls.load(path)
        except MissingStoreError as exc:
            logger.debug("starting a new document for %s: %s", path, exc)
            return cls.new()

    # ----- sections -----

    def _child(self, parent: ET.Element, local: str) -> ET.Element | None:
        tag = self.ns.qname(local)
        for child in parent:
            if child.tag == tag:
                return child
        return None

    def find_section(self, name: str) -> ET.Element | None:
        return self._child(self.root, name)

    def ensure_section(self, name: str) -> ET.Element:
        """Return section *name*, creating it (and its declaration) if absent."""
        section = self.find_section(name)
        if section is not None:
            return section
        section = ET.SubElement(self.root, self.ns.qname(name))
        if name != DEFAULT_SECTION:
            self._declare_section(name)
        logger.debug("created section %s", name)
        return section

    def _declare_section(self, name: str) -> None:
        header = self._child(self.root, SECTIONS_TAG)
        if header is None:
            header = ET.Element(self.ns.qname(SECTIONS_TAG))
            self.root.insert(0, header)
        section_tag = self.ns.qname("section")
        for decl in header:
            if decl.tag == section_tag and decl.get("name") == name:
                return
        ET.SubElement(
            header,
            section_tag,
            {"name": name, "requirePermission": "false", "type": SECTION_HANDLER},
        )

    # ----- entries -----

    def _entries(self, section: str) -> list[ET.Element]:
        node = self.find_section(section)
        if node is None:
            return []
        tag = self.ns.qname(ENTRY_TAG)
        return [child for child in node if child.tag == tag]

    def _find_entry(self, section: str, key: str, ignore_case: bool) -> ET.Element | None:
        wanted = key.lower() if ignore_case else key
        for entry in self._entries(section):
            name = entry.get("key")
            if name is None:
                continue
            if (name.lower() if ignore_case else name) == wanted:
                return entry
        return None

    def get_value(self, section: str, key: str, *, ignore_case: bool = False) -> str | None:
        entry = self._find_entry(section, key, ignore_case)
        if entry is None:
            return None
        return entry.get("value", "")

    def section_values(self, section: str) -> dict[str, str] | None:
        """Return a snapshot of *section* or ``None`` if the section is absent."""
        if self.find_section(section) is None:
            return None
        values: dict[str, str] = {}
        for entry in self._entries(section):
            key = entry.get("key")
            if key is not None:
                values.setdefault(key, entry.get("value", ""))
        return values

    def upsert(self, section: str, key: str, value: str, *, ignore_case: bool = False) -> None:
        """Set *key* in *section*, overwriting in place or appending a new entry."""
        entry = self._find_entry(section, key, ignore_case)
        if entry is not None:
            entry.set("value", value)
            return
        node = self.ensure_section(section)
        ET.SubElement(node, self.ns.qname(ENTRY_TAG), {"key": key, "value": value})

    def remove(self, section: str, key: str, *, ignore_case: bool = False) -> bool:
        entry = self._find_entry(section, key, ignore_case)
        if entry is None:
            return False
        self.find_section(section).remove(entry)
        return True

    def prune_indexed(
        self,
        section: str,
        key: str,
        keep: int,
        *,
        protected: frozenset[str] = frozenset(),
        ignore_case: bool = False,
    ) -> int:
        """Remove ``key<n>`` entries with ``n > keep``; return how many went.

        Keys listed in *protected* are never removed.
        """
        node = self.find_section(section)
        if node is None:
            return 0
        fold = str.lower if ignore_case else str
        base = fold(key)
        guarded = {fold(p) for p in protected}
        removed = 0
        for entry in self._entries(section):
            name = fold(entry.get("key") or "")
            suffix = name[len(base):]
            if not name.startswith(base) or not suffix.isdigit() or name in guarded:
                continue
            if int(suffix) > keep:
                node.remove(entry)
                removed += 1
        return removed

    # ----- output -----

    def _output_root(self) -> ET.Element:
        root = copy.deepcopy(self.root)
        if self.ns.uri:
            marker = f"{{{self.ns.uri}}}"
            for elem in root.iter():
                if isinstance(elem.tag, str) and elem.tag.startswith(marker):
                    local = elem.tag[len(marker):]
                    elem.tag = f"{self.ns.prefix}:{local}" if self.ns.prefix else local
            attr = f"xmlns:{self.ns.prefix}" if self.ns.prefix else "xmlns"
            root.attrib = {attr: self.ns.uri, **root.attrib}
        ET.indent(root, space="  ")
        return root

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        ET.ElementTree(self._output_root()).write(buf, encoding="utf-8", xml_declaration=True)
        return buf.getvalue()

    def save(self, path: Path | str) -> None:
        """Write the document atomically; raise :class:`PersistenceError` on failure."""
        path = Path(path)
        data = self.to_bytes()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_bytes(data)
            tmp.replace(path)
        except OSError as exc:
            raise PersistenceError(f"Cannot save {path}: {exc}") from exc

"""Namespace-aware XPath access to one parsed source record."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from recindex.indexing.namespaces import NamespaceTable
from recindex.indexing.normalization import normalize_whitespace


@dataclass(slots=True)
class ParseError(Exception):
    """Malformed XML or a malformed query expression."""

    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source})"


def _build_parser() -> etree.XMLParser:
    return etree.XMLParser(
        resolve_entities=False,
        no_network=True,
        load_dtd=False,
        huge_tree=True,
        remove_blank_text=False,
    )


def _node_text(node: object) -> str | None:
    if hasattr(node, "itertext"):
        text = normalize_whitespace(" ".join(node.itertext()))
    else:
        text = normalize_whitespace(str(node))
    return text or None


class SourceRecord:
    """A parsed XML tree bound to one namespace table.

    Queries return empty results when nothing matches. Only malformed input or a
    malformed expression raises :class:`ParseError`.
    """

    def __init__(self, root: etree._Element, namespaces: NamespaceTable, *, source: str = "<memory>") -> None:
        self._root = root
        self._namespaces = namespaces
        self._xpath_namespaces = namespaces.as_dict()
        self._source = source

    @property
    def root(self) -> etree._Element:
        return self._root

    @property
    def namespaces(self) -> NamespaceTable:
        return self._namespaces

    @property
    def source(self) -> str:
        return self._source

    @property
    def root_tag(self) -> str:
        return self._root.tag

    def select(self, query: str, context: etree._Element | None = None, **variables: str) -> list[object]:
        """Return all matches of ``query`` in document order.

        Keyword arguments are bound as XPath variables (``$name``).
        """

        node = self._root if context is None else context
        try:
            result = node.xpath(query, namespaces=self._xpath_namespaces, **variables)
        except etree.XPathError as exc:
            raise ParseError(self._source, f"Invalid query {query!r}: {exc}") from exc

        if isinstance(result, list):
            return result
        if isinstance(result, bool):
            return [result] if result else []
        if isinstance(result, float):
            return [] if result != result else [result]
        if isinstance(result, str):
            return [result] if result else []
        return [result]

    def elements(self, query: str, context: etree._Element | None = None, **variables: str) -> list[etree._Element]:
        return [node for node in self.select(query, context, **variables) if isinstance(node, etree._Element)]

    def text(self, query: str, context: etree._Element | None = None, **variables: str) -> str | None:
        """Return the normalized text of the first non-empty match."""

        for node in self.select(query, context, **variables):
            text = _node_text(node)
            if text:
                return text
        return None

    def texts(self, query: str, context: etree._Element | None = None, **variables: str) -> list[str]:
        values: list[str] = []
        for node in self.select(query, context, **variables):
            text = _node_text(node)
            if text:
                values.append(text)
        return values

    def exists(self, query: str, context: etree._Element | None = None) -> bool:
        return bool(self.select(query, context))


def parse_record(source: str | Path | bytes, namespaces: NamespaceTable) -> SourceRecord:
    """Parse a file path or raw bytes into a :class:`SourceRecord`."""

    if isinstance(source, bytes):
        label = "<bytes>"
        payload = source
    else:
        path = Path(source)
        label = str(path)
        try:
            payload = path.read_bytes()
        except OSError as exc:
            raise ParseError(label, f"Failed to read source file: {exc}") from exc

    if not payload.strip():
        raise ParseError(label, "Source document is empty")

    try:
        root = etree.fromstring(payload, parser=_build_parser())
    except etree.XMLSyntaxError as exc:
        raise ParseError(label, f"Document is not well-formed XML: {exc}") from exc

    return SourceRecord(root, namespaces, source=label)

"""Immutable namespace tables used for XPath evaluation."""

from __future__ import annotations

from collections.abc import Iterator, Mapping


DEFAULT_NAMESPACES: dict[str, str] = {
    "xml": "http://www.w3.org/XML/1998/namespace",
    "mets": "http://www.loc.gov/METS/",
    "mods": "http://www.loc.gov/mods/v3",
    "marc": "http://www.loc.gov/MARC21/slim",
    "xlink": "http://www.w3.org/1999/xlink",
    "dv": "http://dfg-viewer.de/",
    "lido": "http://www.lido-schema.org",
    "mix": "http://www.loc.gov/mix/v20",
    "tei": "http://www.tei-c.org/ns/1.0",
    "dc": "http://purl.org/dc/elements/1.1/",
    "dcterms": "http://purl.org/dc/terms/",
    "ead": "urn:isbn:1-931666-22-9",
    "ead3": "http://ead3.archivists.org/schema/",
    "rdf": "http://www.w3.org/1999/02/22-rdf-syntax-ns#",
}


class NamespaceTable(Mapping[str, str]):
    """Read-only prefix -> URI mapping.

    Tables never change after construction; ``with_overrides`` returns a new
    table, so one indexer's bindings cannot leak into another's.
    """

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Mapping[str, str] | None = None) -> None:
        clean: dict[str, str] = {}
        for prefix, uri in (bindings or {}).items():
            prefix = prefix.strip()
            uri = uri.strip()
            if not prefix:
                raise ValueError("Namespace prefix cannot be empty")
            if not uri:
                raise ValueError(f"Namespace URI for prefix '{prefix}' cannot be empty")
            clean[prefix] = uri
        self._bindings = clean

    @classmethod
    def default(cls) -> "NamespaceTable":
        return cls(DEFAULT_NAMESPACES)

    def with_overrides(self, overrides: Mapping[str, str] | None) -> "NamespaceTable":
        if not overrides:
            return self
        merged = dict(self._bindings)
        merged.update(overrides)
        return NamespaceTable(merged)

    def __getitem__(self, prefix: str) -> str:
        return self._bindings[prefix]

    def __iter__(self) -> Iterator[str]:
        return iter(self._bindings)

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"NamespaceTable({self._bindings!r})"

    def __hash__(self) -> int:
        return hash(frozenset(self._bindings.items()))

    def as_dict(self) -> dict[str, str]:
        # lxml rejects the reserved "xml" prefix in namespace maps
        return {prefix: uri for prefix, uri in self._bindings.items() if prefix != "xml"}


def parse_namespace_bindings(raw: str) -> dict[str, str]:
    """Parse ``prefix=uri;prefix=uri`` into a mapping."""

    bindings: dict[str, str] = {}
    for part in raw.split(";"):
        part = part.strip()
        if not part:
            continue
        prefix, sep, uri = part.partition("=")
        if not sep or not prefix.strip() or not uri.strip():
            raise ValueError(f"Invalid namespace binding: {part!r}")
        bindings[prefix.strip()] = uri.strip()
    return bindings

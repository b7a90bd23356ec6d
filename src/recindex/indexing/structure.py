"""Variant-driven decomposition of a source record into a document tree."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

from lxml import etree

from recindex.indexing.connector import HttpConnector, RemoteFetchError, is_remote_url
from recindex.indexing.models import DocumentKind, IndexingJob, StructuralDocument, StructureWarning
from recindex.indexing.normalization import apply_identifier_modifications, has_illegal_identifier_characters
from recindex.indexing.source import ParseError, SourceRecord
from recindex.indexing.variants import FormatVariant, Link

logger = logging.getLogger(__name__)

PAGE_DOCSTRCT = "page"
ACCESS_CONDITION_FIELD = "ACCESSCONDITION"
OPEN_ACCESS = "OPENACCESS"


def apply_access_conditions(document: StructuralDocument, inherited: list[str] | None = None) -> None:
    """Give every document in the tree at least one access condition.

    A document without its own conditions takes its parent's, except
    ``OPENACCESS``; if that leaves nothing it becomes ``OPENACCESS``.
    """

    if not document.fields.get(ACCESS_CONDITION_FIELD):
        values = [value for value in inherited or [] if value != OPEN_ACCESS]
        document.fields[ACCESS_CONDITION_FIELD] = values or [OPEN_ACCESS]
    for child in document.children:
        apply_access_conditions(child, document.fields[ACCESS_CONDITION_FIELD])


def find_struct_node(record: SourceRecord, variant: FormatVariant) -> etree._Element | None:
    """Return the first element matched by the variant's root queries."""

    for query in variant.structure.root_queries:
        nodes = record.elements(query)
        if nodes:
            return nodes[0]
    return None


def metadata_context(record: SourceRecord, variant: FormatVariant, node: etree._Element) -> etree._Element:
    """Return the metadata section linked from ``node``, or the node itself."""

    link = variant.structure.metadata_link
    if link is None:
        return node
    for target in _follow_link(record, link, node):
        if isinstance(target, etree._Element):
            return target
    return node


def is_anchor_record(record: SourceRecord, variant: FormatVariant) -> bool:
    query = variant.structure.work_marker_query
    if query is None:
        return False
    return not record.exists(query)


def _follow_link(record: SourceRecord, link: Link, node: etree._Element) -> list[object]:
    results: list[object] = []
    for raw_ref in record.texts(link.ref_query, node):
        # IDREFS attributes may list several identifiers
        for ref in raw_ref.split():
            results.extend(record.select(link.target_query, ref=ref))
    return results


def _first_text(record: SourceRecord, queries: tuple[str, ...], *contexts: etree._Element) -> str | None:
    for context in contexts:
        for query in queries:
            value = record.text(query, context)
            if value:
                return value
    return None


def _first_texts(record: SourceRecord, queries: tuple[str, ...], context: etree._Element) -> list[str]:
    for query in queries:
        values = record.texts(query, context)
        if values:
            return values
    return []


def _parse_order(raw_value: str | None) -> int | None:
    if raw_value is None:
        return None
    try:
        return int(raw_value.strip())
    except ValueError:
        return None


class StructureWalker:
    """Build the :class:`StructuralDocument` tree for one record.

    Problems below the root are collected as warnings and the affected node is
    skipped with its subtree; only query errors on the root itself propagate.
    """

    def __init__(
        self,
        record: SourceRecord,
        variant: FormatVariant,
        *,
        connector: HttpConnector | None = None,
        fetch_timeout: float | None = None,
    ) -> None:
        self._record = record
        self._variant = variant
        self._rules = variant.structure
        self._connector = connector
        self._fetch_timeout = fetch_timeout
        self._warnings: list[StructureWarning] = []
        self._seen: set[str] = set()
        self._positional = 0

    @property
    def warnings(self) -> list[StructureWarning]:
        return list(self._warnings)

    def _warn(self, locator: str, message: str) -> None:
        warning = StructureWarning(locator=locator, message=message)
        logger.warning("%s", warning)
        self._warnings.append(warning)

    def build(self, struct_node: etree._Element, pi: str, job: IndexingJob) -> StructuralDocument:
        is_anchor = is_anchor_record(self._record, self._variant)
        root = StructuralDocument(
            pi=pi,
            kind=DocumentKind.ANCHOR if is_anchor else DocumentKind.WORK,
            root_pi=pi,
        )
        self._seen.add(pi)
        context = metadata_context(self._record, self._variant, struct_node)
        label = self._populate(root, struct_node, context, pi, ancestor_labels=[])

        root.add_field("PI", pi)
        root.add_field("ISANCHOR" if is_anchor else "ISWORK", "true")
        root.add_field("FILENAME", job.file_path.name)
        for query in self._rules.collection_queries:
            for value in self._record.texts(query, context):
                root.add_field("DC", value)

        self._walk_children(root, struct_node, pi, [label] if label else [])

        if is_anchor:
            root.set_field("NUMPAGES", "0")
        else:
            pages = self._build_pages(pi, job)
            for page in pages:
                root.add_child(page)
            root.set_field("NUMPAGES", str(len(pages)))
        return root

    def _populate(
        self,
        document: StructuralDocument,
        node: etree._Element,
        context: etree._Element,
        root_pi: str,
        *,
        ancestor_labels: list[str],
    ) -> str | None:
        rules = self._rules
        doc_type = self._record.text(rules.type_query, node) if rules.type_query else None
        document.add_field("DOCSTRCT", doc_type or rules.default_type)

        label = _first_text(self._record, rules.label_queries, node, context)
        document.add_field("LABEL", label)

        for name, queries in rules.field_queries:
            for value in _first_texts(self._record, queries, context):
                document.add_field(name, value)

        conditions: dict[str, None] = {}
        for query in rules.access_condition_queries:
            conditions.update(dict.fromkeys(self._record.texts(query, context)))
        for value in conditions:
            document.add_field(ACCESS_CONDITION_FIELD, value)

        document.add_field("PI_TOPSTRUCT", root_pi)
        document.add_field("SOURCEDOCFORMAT", self._variant.schema_kind.value)
        default_parts = [*ancestor_labels, label] if label else list(ancestor_labels)
        document.add_field("DEFAULT", " ".join(default_parts))
        return label

    def _walk_children(
        self,
        parent: StructuralDocument,
        node: etree._Element,
        root_pi: str,
        labels: list[str],
    ) -> None:
        if self._rules.child_query is None:
            return
        for child_node in self._record.elements(self._rules.child_query, node):
            self._positional += 1
            locator = f"{root_pi}/s{self._positional}"
            try:
                node_id = self._record.text(self._rules.node_id_query, child_node) if self._rules.node_id_query else None
                child_pi = apply_identifier_modifications(f"{root_pi}_{node_id or f's{self._positional}'}")
                if has_illegal_identifier_characters(child_pi):
                    self._warn(locator, f"Structure identifier {child_pi} contains illegal characters; using position")
                    child_pi = f"{root_pi}_s{self._positional}"
                if child_pi in self._seen:
                    self._warn(locator, f"Duplicate structure identifier {child_pi}; skipping subtree")
                    continue
                child = StructuralDocument(pi=child_pi, kind=DocumentKind.STRUCTURE)
                context = metadata_context(self._record, self._variant, child_node)
                label = self._populate(child, child_node, context, root_pi, ancestor_labels=labels)
            except ParseError as exc:
                self._warn(locator, f"Structure node could not be decomposed: {exc.message}")
                continue

            self._seen.add(child_pi)
            parent.add_child(child)
            self._walk_children(child, child_node, root_pi, [*labels, label] if label else labels)

    def _page_file(self, node: etree._Element) -> str | None:
        rules = self._rules
        if rules.page_file_query is not None:
            value = self._record.text(rules.page_file_query, node)
            if value:
                return value
        if rules.page_file_link is not None:
            for target in _follow_link(self._record, rules.page_file_link, node):
                value = str(target).strip()
                if value:
                    return value
        return None

    def _build_pages(self, root_pi: str, job: IndexingJob) -> list[StructuralDocument]:
        rules = self._rules
        if rules.page_query is None:
            return []

        pages: list[StructuralDocument] = []
        orders: set[int] = set()
        counter = job.page_count_start
        for index, node in enumerate(self._record.elements(rules.page_query), start=1):
            locator = f"{root_pi}/page[{index}]"
            try:
                explicit = _parse_order(self._record.text(rules.page_order_query, node)) if rules.page_order_query else None
                order_label = self._record.text(rules.page_label_query, node) if rules.page_label_query else None
                file_name = self._page_file(node)
            except ParseError as exc:
                self._warn(locator, f"Page could not be decomposed: {exc.message}")
                continue

            order = explicit if explicit is not None else counter
            counter = order + 1
            page_pi = f"{root_pi}_page_{order:04d}"
            if order in orders or page_pi in self._seen:
                self._warn(locator, f"Duplicate page order {order}; skipping page")
                continue
            orders.add(order)
            self._seen.add(page_pi)

            page = StructuralDocument(pi=page_pi, kind=DocumentKind.PAGE)
            page.add_field("DOCSTRCT", PAGE_DOCSTRCT)
            page.add_field("ORDER", str(order))
            page.add_field("ORDERLABEL", order_label)
            page.add_field("PI_TOPSTRUCT", root_pi)
            page.add_field("SOURCEDOCFORMAT", self._variant.schema_kind.value)
            if file_name:
                page.add_field("FILENAME", self._localize(file_name, job, locator, page))
                page.add_field("FULLTEXT", self._read_fulltext(file_name, job, locator))
            pages.append(page)
        return pages

    def _localize(self, file_name: str, job: IndexingJob, locator: str, page: StructuralDocument) -> str:
        if not job.download_external_images or not is_remote_url(file_name):
            return file_name
        media_folder = job.data_folders.get("media")
        if media_folder is None:
            self._warn(locator, "External image download requested but no media folder configured")
            return file_name
        if self._connector is None:
            self._warn(locator, "External image download requested but no connector available")
            return file_name
        try:
            local = self._connector.download(file_name, Path(media_folder), self._fetch_timeout)
        except RemoteFetchError as exc:
            self._warn(locator, f"External image not downloaded: {exc}")
            return file_name
        except OSError as exc:
            self._warn(locator, f"External image could not be stored in {media_folder}: {exc}")
            return file_name
        page.add_field("FILENAME_REMOTE", file_name)
        return local.name

    def _read_fulltext(self, file_name: str, job: IndexingJob, locator: str) -> str | None:
        folder = job.data_folders.get("fulltext")
        if folder is None:
            return None
        stem = Path(urlparse(file_name).path).stem if is_remote_url(file_name) else Path(file_name).stem
        candidate = Path(folder) / f"{stem}.txt"
        if not candidate.is_file():
            return None
        try:
            text = candidate.read_text(encoding="utf-8", errors="replace").strip()
        except OSError as exc:
            self._warn(locator, f"Full text {candidate} could not be read: {exc}")
            return None
        return text or None

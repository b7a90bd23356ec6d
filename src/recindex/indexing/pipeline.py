"""Template pipeline that turns one source record into committed documents."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import threading

from lxml import etree

from recindex.indexing.config import IndexerSettings
from recindex.indexing.connector import HttpConnector
from recindex.indexing.models import DocumentKind, IndexingJob, IndexingResult, StructuralDocument
from recindex.indexing.namespaces import NamespaceTable
from recindex.indexing.normalization import apply_identifier_modifications, has_illegal_identifier_characters
from recindex.indexing.resolver import resolve_anchor
from recindex.indexing.source import ParseError, SourceRecord, parse_record
from recindex.indexing.structure import (
    ACCESS_CONDITION_FIELD,
    StructureWalker,
    apply_access_conditions,
    find_struct_node,
    metadata_context,
)
from recindex.indexing.variants import FormatVariant
from recindex.search.writestrategy import CommitError, DocumentSink, create_write_strategy, estimate_size

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ClassificationError(Exception):
    """The record does not fit the variant it is being indexed with."""

    source: str
    message: str

    def __str__(self) -> str:
        return f"{self.message} (source={self.source})"


def root_path(root: StructuralDocument, variant: FormatVariant) -> str:
    """Return the hierarchical path of a record: collection, anchor and own PI."""

    if variant.suppress_root_path:
        return ""
    segments: list[str] = []
    collection = root.first("DC")
    if collection:
        segments.extend(part for part in collection.split(".") if part)
    if root.kind is DocumentKind.VOLUME and root.anchor_pi:
        segments.append(root.anchor_pi)
    segments.append(root.pi)
    return "/".join(segments)


class RecordIndexer:
    """Index records of one format variant into a document sink.

    The namespace table is fixed when the indexer is built: the configured base
    table overlaid with the variant's own bindings. Indexers for different
    variants therefore never see each other's prefixes.
    """

    def __init__(
        self,
        variant: FormatVariant,
        repository: DocumentSink,
        *,
        settings: IndexerSettings | None = None,
        connector: HttpConnector | None = None,
        namespaces: NamespaceTable | None = None,
    ) -> None:
        self._variant = variant
        self._repository = repository
        self._settings = settings or IndexerSettings()
        self._namespaces = variant.bind_namespaces(namespaces or self._settings.namespaces)
        self._connector = connector
        self._owns_connector = False
        self._connector_lock = threading.Lock()

    @property
    def variant(self) -> FormatVariant:
        return self._variant

    @property
    def namespaces(self) -> NamespaceTable:
        return self._namespaces

    def close(self) -> None:
        with self._connector_lock:
            if self._owns_connector and self._connector is not None:
                self._connector.close()
                self._connector = None
                self._owns_connector = False

    def index(self, job: IndexingJob) -> IndexingResult:
        """Run validate, classify, structure, resolve, root path, emit, report."""

        result = IndexingResult(source_path=str(job.file_path), from_reindex_queue=job.from_reindex_queue)
        try:
            record = self._validate(job)

            result.stage = "classify"
            result.schema_kind = self._variant.schema_kind
            pi, struct_node = self._classify(record)
            result.pi = pi

            result.stage = "structure"
            walker = StructureWalker(
                record,
                self._variant,
                connector=self._connector_for(job),
                fetch_timeout=self._settings.fetch_timeout_seconds,
            )
            root = walker.build(struct_node, pi, job)
            result.warnings.extend(walker.warnings)

            result.stage = "resolve"
            self._resolve(record, root)
            self._inherit_anchor_access(root)
            apply_access_conditions(root)

            result.stage = "root_path"
            path = root_path(root, self._variant)
            for document in root.iter_tree():
                document.fields["ROOT_PATH"] = [path]

            result.stage = "emit"
            result.identifiers = self._emit(job, root)
            result.stage = "done"
        except (ParseError, ClassificationError, CommitError) as exc:
            result.error = str(exc)
            logger.error("Indexing %s failed during %s: %s", job.file_path, result.stage, exc)
            return result

        logger.info(
            "Indexed %s as %s (%s, %d documents, %d warnings%s)",
            job.file_path,
            result.pi,
            self._variant.name,
            len(result.identifiers),
            len(result.warnings),
            ", from reindex queue" if job.from_reindex_queue else "",
        )
        return result

    def _validate(self, job: IndexingJob) -> SourceRecord:
        path = Path(job.file_path)
        if not path.is_file():
            raise ParseError(str(path), "Source file does not exist")
        return parse_record(path, self._namespaces)

    def _classify(self, record: SourceRecord) -> tuple[str, etree._Element]:
        variant = self._variant
        if record.root_tag != variant.root_tag:
            raise ClassificationError(
                record.source,
                f"Root element {record.root_tag} does not match variant '{variant.name}'",
            )
        if variant.detect_query is not None and not record.exists(variant.detect_query):
            raise ClassificationError(record.source, f"Record is not a '{variant.name}' record")

        struct_node = find_struct_node(record, variant)
        if struct_node is None:
            raise ClassificationError(record.source, "Struct node not found")

        context = metadata_context(record, variant, struct_node)
        pi: str | None = None
        for query in variant.identifier_queries:
            pi = apply_identifier_modifications(record.text(query, context))
            if pi:
                break
        if not pi:
            raise ClassificationError(record.source, "PI not found")
        if has_illegal_identifier_characters(pi):
            raise ClassificationError(record.source, f"PI contains illegal characters: {pi}")
        return pi, struct_node

    def _resolve(self, record: SourceRecord, root: StructuralDocument) -> None:
        link = resolve_anchor(record, self._variant, child_pi=root.pi)
        if link is None:
            return
        if link.anchor_pi == root.pi:
            logger.warning("Record %s names itself as its anchor; not treated as a volume", root.pi)
            return

        if root.kind is DocumentKind.ANCHOR:
            root.fields.pop("ISANCHOR", None)
            root.set_field("ISWORK", "true")
        root.kind = DocumentKind.VOLUME
        root.anchor_pi = link.anchor_pi
        root.set_field("PI_PARENT", link.anchor_pi)
        root.set_field("PI_ANCHOR", link.anchor_pi)

    def _inherit_anchor_access(self, root: StructuralDocument) -> None:
        """Copy an indexed anchor's access conditions onto a volume that has none."""

        if root.kind is not DocumentKind.VOLUME or root.fields.get(ACCESS_CONDITION_FIELD):
            return
        get_document = getattr(self._repository, "get_document", None)
        if get_document is None or not root.anchor_pi:
            return
        anchor = get_document(root.anchor_pi)
        if anchor is None:
            return
        for value in anchor.fields.get(ACCESS_CONDITION_FIELD, []):
            root.add_field(ACCESS_CONDITION_FIELD, value)

    def _emit(self, job: IndexingJob, root: StructuralDocument) -> list[str]:
        settings = self._settings
        try:
            source_size, folders_size = estimate_size(Path(job.file_path), job.data_folders)
        except OSError as exc:
            raise CommitError(f"Cannot size data folders: {exc}") from exc
        estimated = source_size + folders_size
        if folders_size >= settings.data_folder_size_threshold_bytes:
            estimated = max(estimated, settings.size_threshold_bytes)

        try:
            strategy = create_write_strategy(
                self._repository,
                estimated_size=estimated,
                threshold=settings.size_threshold_bytes,
                temp_folder=settings.temp_dir,
            )
        except OSError as exc:
            raise CommitError(f"Cannot create write buffer in {settings.temp_dir}: {exc}") from exc
        try:
            try:
                strategy.add_tree(root)
            except ValueError as exc:
                raise CommitError(f"Document tree rejected: {exc}") from exc
            except OSError as exc:
                raise CommitError(f"Buffering documents failed: {exc}") from exc
            commit = strategy.commit()
        finally:
            strategy.discard()

        if commit.error is not None:
            raise commit.error
        return commit.written

    def _connector_for(self, job: IndexingJob) -> HttpConnector | None:
        with self._connector_lock:
            if not job.download_external_images:
                return self._connector
            if self._connector is None:
                self._connector = HttpConnector(default_timeout=self._settings.fetch_timeout_seconds)
                self._owns_connector = True
            return self._connector

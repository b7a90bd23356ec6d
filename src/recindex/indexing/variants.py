"""Format variants: per-schema extraction rules expressed as data.

A variant bundles the schema kind, its namespace bindings and the ordered query
lists used to find identifiers, anchor links and structure. New schemas are added
by registering another :class:`FormatVariant`, usually derived from an existing
one with :meth:`FormatVariant.derive`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from pathlib import Path
import threading
from typing import Any, Mapping

from lxml import etree

from recindex.indexing.models import SchemaKind
from recindex.indexing.namespaces import NamespaceTable
from recindex.indexing.source import ParseError, SourceRecord, parse_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Link:
    """Follow a reference attribute to another part of the document.

    ``ref_query`` runs against the current node and yields reference values;
    ``target_query`` is evaluated with each value bound to ``$ref``.
    """

    ref_query: str
    target_query: str


@dataclass(frozen=True, slots=True)
class StructureRules:
    root_queries: tuple[str, ...]
    child_query: str | None = None
    node_id_query: str | None = None
    type_query: str | None = None
    label_queries: tuple[str, ...] = ()
    metadata_link: Link | None = None
    field_queries: tuple[tuple[str, tuple[str, ...]], ...] = ()
    collection_queries: tuple[str, ...] = ()
    access_condition_queries: tuple[str, ...] = ()
    work_marker_query: str | None = None
    page_query: str | None = None
    page_order_query: str | None = None
    page_label_query: str | None = None
    page_file_query: str | None = None
    page_file_link: Link | None = None
    default_type: str = "record"


@dataclass(frozen=True, slots=True)
class FormatVariant:
    """Immutable extraction configuration for one metadata schema family."""

    name: str
    schema_kind: SchemaKind
    root_tag: str
    structure: StructureRules
    namespaces: NamespaceTable = field(default_factory=NamespaceTable)
    identifier_queries: tuple[str, ...] = ()
    anchor_queries: tuple[str, ...] = ()
    detect_query: str | None = None
    suppress_root_path: bool = False
    parent: str | None = None

    def derive(
        self,
        name: str,
        schema_kind: SchemaKind,
        *,
        namespaces: Mapping[str, str] | None = None,
        prepend_identifier_queries: tuple[str, ...] = (),
        prepend_anchor_queries: tuple[str, ...] = (),
        structure: Mapping[str, Any] | None = None,
        **overrides: Any,
    ) -> "FormatVariant":
        """Return a variant that inherits this one's rules and overrides a subset."""

        derived_structure = replace(self.structure, **structure) if structure else self.structure
        identifier_queries = overrides.pop("identifier_queries", self.identifier_queries)
        anchor_queries = overrides.pop("anchor_queries", self.anchor_queries)
        return replace(
            self,
            name=name,
            schema_kind=schema_kind,
            namespaces=self.namespaces.with_overrides(namespaces),
            identifier_queries=tuple(prepend_identifier_queries) + tuple(identifier_queries),
            anchor_queries=tuple(prepend_anchor_queries) + tuple(anchor_queries),
            structure=derived_structure,
            parent=self.name,
            **overrides,
        )

    def bind_namespaces(self, base: NamespaceTable) -> NamespaceTable:
        """Overlay this variant's bindings on ``base`` for one indexer."""

        return base.with_overrides(self.namespaces)

    def matches(self, root: etree._Element, base: NamespaceTable | None = None) -> bool:
        if root.tag != self.root_tag:
            return False
        if self.detect_query is None:
            return True
        record = SourceRecord(root, self.bind_namespaces(base or NamespaceTable.default()))
        return record.exists(self.detect_query)


class VariantRegistry:
    """Named variants in detection priority order."""

    def __init__(self) -> None:
        self._variants: dict[str, FormatVariant] = {}
        self._lock = threading.Lock()

    def register(self, variant: FormatVariant) -> None:
        if not variant.name:
            raise ValueError("Variant name cannot be empty")
        with self._lock:
            self._variants[variant.name] = variant

    def get(self, name: str) -> FormatVariant:
        try:
            return self._variants[name]
        except KeyError:
            known = ", ".join(sorted(self._variants)) or "none"
            raise KeyError(f"Unknown format variant '{name}' (known: {known})") from None

    def names(self) -> list[str]:
        return list(self._variants)

    def __contains__(self, name: object) -> bool:
        return name in self._variants

    def detect(self, source: str | Path | bytes | etree._Element, base: NamespaceTable | None = None) -> FormatVariant | None:
        """Return the first registered variant whose root element matches."""

        if isinstance(source, etree._Element):
            root = source
        else:
            root = parse_record(source, base or NamespaceTable.default()).root

        for variant in list(self._variants.values()):
            try:
                if variant.matches(root, base):
                    return variant
            except ParseError:
                logger.warning("Detection query of variant '%s' is invalid", variant.name)
        return None


METS_NS = "http://www.loc.gov/METS/"
EAD_NS = "urn:isbn:1-931666-22-9"
EAD3_NS = "http://ead3.archivists.org/schema/"
LIDO_NS = "http://www.lido-schema.org"

_MODS_HOST_ID = (
    "/mets:mets/mets:dmdSec/mets:mdWrap[@MDTYPE='MODS']/mets:xmlData/mods:mods"
    "/mods:relatedItem[@type='host']/mods:recordInfo/mods:recordIdentifier"
)
_MARC_773_W = (
    "/mets:mets/mets:dmdSec/mets:mdWrap[@MDTYPE='MARC']/mets:xmlData//marc:record"
    "/marc:datafield[@tag='773']/marc:subfield[@code='w']"
)

METS = FormatVariant(
    name="mets",
    schema_kind=SchemaKind.METS,
    root_tag=f"{{{METS_NS}}}mets",
    namespaces=NamespaceTable(
        {
            "mets": METS_NS,
            "mods": "http://www.loc.gov/mods/v3",
            "marc": "http://www.loc.gov/MARC21/slim",
            "xlink": "http://www.w3.org/1999/xlink",
        }
    ),
    identifier_queries=(
        "mods:recordInfo/mods:recordIdentifier",
        "mods:identifier[@type='urn']",
    ),
    anchor_queries=(_MODS_HOST_ID,),
    structure=StructureRules(
        # Volume files start with an anchor div pointing elsewhere via mets:mptr
        root_queries=("/mets:mets/mets:structMap[@TYPE='LOGICAL']//mets:div[@DMDID and @ID and not(mets:mptr)]",),
        child_query="mets:div[not(mets:mptr)]",
        node_id_query="@ID",
        type_query="@TYPE",
        label_queries=("@LABEL",),
        metadata_link=Link(
            ref_query="@DMDID",
            target_query="/mets:mets/mets:dmdSec[@ID=$ref]/mets:mdWrap[@MDTYPE='MODS']/mets:xmlData/mods:mods",
        ),
        field_queries=(
            ("MD_TITLE", ("mods:titleInfo[not(@type)]/mods:title", "mods:titleInfo/mods:title")),
            ("MD_CREATOR", ("mods:name/mods:displayForm", "mods:name/mods:namePart")),
            ("MD_YEARPUBLISH", ("mods:originInfo/mods:dateIssued",)),
            ("MD_PLACEPUBLISH", ("mods:originInfo/mods:place/mods:placeTerm",)),
            ("MD_LANGUAGE", ("mods:language/mods:languageTerm",)),
            ("MD_CURRENTNO", ("mods:part/mods:detail/mods:number",)),
        ),
        collection_queries=("mods:classification",),
        access_condition_queries=("mods:accessCondition",),
        work_marker_query="/mets:mets/mets:structMap[@TYPE='PHYSICAL']",
        page_query="/mets:mets/mets:structMap[@TYPE='PHYSICAL']/mets:div/mets:div",
        page_order_query="@ORDER",
        page_label_query="@ORDERLABEL",
        page_file_link=Link(
            ref_query="mets:fptr/@FILEID",
            target_query=(
                "/mets:mets/mets:fileSec/mets:fileGrp[@USE='PRESENTATION' or @USE='DEFAULT']"
                "/mets:file[@ID=$ref]/mets:FLocat/@xlink:href"
            ),
        ),
        default_type="monograph",
    ),
)

METS_MARC = METS.derive(
    "mets_marc",
    SchemaKind.METS_MARC,
    identifier_queries=("marc:controlfield[@tag='001']",),
    prepend_anchor_queries=(_MARC_773_W,),
    detect_query="/mets:mets/mets:dmdSec/mets:mdWrap[@MDTYPE='MARC']",
    structure={
        "metadata_link": Link(
            ref_query="@DMDID",
            target_query="/mets:mets/mets:dmdSec[@ID=$ref]/mets:mdWrap[@MDTYPE='MARC']/mets:xmlData//marc:record",
        ),
        "field_queries": (
            ("MD_TITLE", ("marc:datafield[@tag='245']/marc:subfield[@code='a']",)),
            ("MD_CREATOR", ("marc:datafield[@tag='100']/marc:subfield[@code='a']",)),
            (
                "MD_YEARPUBLISH",
                (
                    "marc:datafield[@tag='264']/marc:subfield[@code='c']",
                    "marc:datafield[@tag='260']/marc:subfield[@code='c']",
                ),
            ),
            (
                "MD_PLACEPUBLISH",
                (
                    "marc:datafield[@tag='264']/marc:subfield[@code='a']",
                    "marc:datafield[@tag='260']/marc:subfield[@code='a']",
                ),
            ),
            ("MD_LANGUAGE", ("marc:datafield[@tag='041']/marc:subfield[@code='a']",)),
            ("MD_CURRENTNO", ("marc:datafield[@tag='490']/marc:subfield[@code='v']",)),
        ),
        "collection_queries": ("marc:datafield[@tag='084']/marc:subfield[@code='a']",),
        "access_condition_queries": (
            "marc:datafield[@tag='506']/marc:subfield[@code='a']",
            "marc:datafield[@tag='540']/marc:subfield[@code='a']",
        ),
    },
)

EAD = FormatVariant(
    name="ead",
    schema_kind=SchemaKind.EAD,
    root_tag=f"{{{EAD_NS}}}ead",
    namespaces=NamespaceTable({"ead": EAD_NS}),
    identifier_queries=("/ead:ead/ead:eadheader/ead:eadid", "ead:did/ead:unitid"),
    anchor_queries=(),
    structure=StructureRules(
        root_queries=("/ead:ead/ead:archdesc",),
        child_query="ead:dsc/ead:c | ead:c",
        node_id_query="@id",
        type_query="@level",
        label_queries=("ead:did/ead:unittitle",),
        field_queries=(
            ("MD_TITLE", ("ead:did/ead:unittitle",)),
            ("MD_UNITID", ("ead:did/ead:unitid",)),
            ("MD_UNITDATE", ("ead:did/ead:unitdate",)),
            ("MD_REPOSITORY", ("ead:did/ead:repository/ead:corpname", "ead:did/ead:repository")),
            ("MD_SCOPECONTENT", ("ead:scopecontent/ead:p",)),
        ),
        access_condition_queries=("ead:accessrestrict/ead:p",),
        default_type="collection",
    ),
    suppress_root_path=True,
)

# Second schema generation: same structure, different URI under the same "ead" prefix
EAD3 = EAD.derive(
    "ead3",
    SchemaKind.EAD3,
    namespaces={"ead": EAD3_NS},
    prepend_identifier_queries=("/ead:ead/ead:control/ead:recordid",),
    root_tag=f"{{{EAD3_NS}}}ead",
)

LIDO = FormatVariant(
    name="lido",
    schema_kind=SchemaKind.LIDO,
    root_tag=f"{{{LIDO_NS}}}lido",
    namespaces=NamespaceTable({"lido": LIDO_NS}),
    identifier_queries=("lido:lidoRecID",),
    anchor_queries=(
        "/lido:lido/lido:descriptiveMetadata/lido:objectRelationWrap/lido:relatedWorksWrap"
        "/lido:relatedWorkSet[lido:relatedWorkRelType/lido:term='is part of']"
        "/lido:relatedWork/lido:object/lido:objectID",
    ),
    structure=StructureRules(
        root_queries=("/lido:lido",),
        type_query="lido:descriptiveMetadata/lido:objectClassificationWrap/lido:objectWorkTypeWrap/lido:objectWorkType/lido:term",
        label_queries=(
            "lido:descriptiveMetadata/lido:objectIdentificationWrap/lido:titleWrap/lido:titleSet/lido:appellationValue",
        ),
        field_queries=(
            (
                "MD_TITLE",
                ("lido:descriptiveMetadata/lido:objectIdentificationWrap/lido:titleWrap/lido:titleSet/lido:appellationValue",),
            ),
            (
                "MD_INVENTORYNUMBER",
                ("lido:descriptiveMetadata/lido:objectIdentificationWrap/lido:repositoryWrap/lido:repositorySet/lido:workID",),
            ),
            (
                "MD_CREATOR",
                ("lido:descriptiveMetadata/lido:eventWrap/lido:eventSet/lido:event/lido:eventActor//lido:nameActorSet/lido:appellationValue",),
            ),
        ),
        collection_queries=(
            "lido:descriptiveMetadata/lido:objectClassificationWrap/lido:classificationWrap/lido:classification/lido:term",
        ),
        access_condition_queries=(
            "lido:administrativeMetadata/lido:rightsWorkWrap/lido:rightsWorkSet/lido:rightsType/lido:term",
        ),
        page_query="/lido:lido/lido:administrativeMetadata/lido:resourceWrap/lido:resourceSet",
        page_order_query="@lido:sortorder",
        page_label_query="lido:resourceDescription",
        page_file_query="lido:resourceRepresentation/lido:linkResource",
        default_type="object",
    ),
)

DUBLINCORE = FormatVariant(
    name="dublincore",
    schema_kind=SchemaKind.DUBLINCORE,
    root_tag="record",
    namespaces=NamespaceTable({"dc": "http://purl.org/dc/elements/1.1/", "dcterms": "http://purl.org/dc/terms/"}),
    identifier_queries=("dc:identifier",),
    anchor_queries=("/record/dcterms:isPartOf",),
    detect_query="/record/dc:*",
    structure=StructureRules(
        root_queries=("/record",),
        type_query="dc:type",
        label_queries=("dc:title",),
        field_queries=(
            ("MD_TITLE", ("dc:title",)),
            ("MD_CREATOR", ("dc:creator",)),
            ("MD_DATE", ("dc:date",)),
            ("MD_PUBLISHER", ("dc:publisher",)),
            ("MD_LANGUAGE", ("dc:language",)),
            ("MD_SUBJECT", ("dc:subject",)),
        ),
        access_condition_queries=("dc:rights",),
        page_query="/record/dc:relation",
        page_file_query=".",
        default_type="record",
    ),
)


def build_default_variants() -> VariantRegistry:
    """Return the built-in variants, most specific first."""

    registry = VariantRegistry()
    for variant in (METS_MARC, METS, EAD3, EAD, LIDO, DUBLINCORE):
        registry.register(variant)
    return registry

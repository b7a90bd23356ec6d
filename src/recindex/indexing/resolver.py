"""Anchor/volume resolution over a variant's ordered anchor candidates."""

from __future__ import annotations

import logging

from recindex.indexing.models import AnchorLink
from recindex.indexing.normalization import apply_identifier_modifications
from recindex.indexing.source import SourceRecord
from recindex.indexing.variants import FormatVariant

logger = logging.getLogger(__name__)


def resolve_anchor(record: SourceRecord, variant: FormatVariant, *, child_pi: str | None = None) -> AnchorLink | None:
    """Return the link for the first non-empty anchor candidate, or ``None``.

    Candidates are tried in the variant's configured order; the first hit wins.
    Later candidates are still evaluated so disagreements can be audited.
    """

    link: AnchorLink | None = None
    for index, query in enumerate(variant.anchor_queries):
        value = apply_identifier_modifications(record.text(query))
        if not value:
            continue
        if link is None:
            link = AnchorLink(child_pi=child_pi, anchor_pi=value, source_query=query, source_index=index)
            continue
        if value != link.anchor_pi and value not in link.conflicts:
            link.conflicts.append(value)

    if link is not None and link.conflicts:
        logger.warning(
            "Ambiguous anchor for %s: using '%s' from candidate %d, ignoring %s",
            child_pi or record.source,
            link.anchor_pi,
            link.source_index,
            ", ".join(link.conflicts),
        )
    return link


def anchor_identifier(record: SourceRecord, variant: FormatVariant) -> str | None:
    link = resolve_anchor(record, variant)
    return link.anchor_pi if link is not None else None


def is_volume(record: SourceRecord, variant: FormatVariant) -> bool:
    """A record is a volume exactly when an anchor identifier resolves."""

    return anchor_identifier(record, variant) is not None

"""Record parsing, format variants, anchor resolution and the indexing pipeline."""

from .models import DocumentKind, IndexingJob, IndexingResult, SchemaKind, StructuralDocument
from .pipeline import ClassificationError, RecordIndexer, root_path
from .variants import FormatVariant, VariantRegistry, build_default_variants

__all__ = [
    "ClassificationError",
    "DocumentKind",
    "FormatVariant",
    "IndexingJob",
    "IndexingResult",
    "RecordIndexer",
    "SchemaKind",
    "StructuralDocument",
    "VariantRegistry",
    "build_default_variants",
    "root_path",
]

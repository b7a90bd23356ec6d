"""Format-polymorphic indexing of library and archival metadata records."""

"""Family grouping and relationship consolidation for church membership records."""

"""Metastore — versioned metadata catalog core."""

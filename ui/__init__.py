"""HTTP API for the query dashboard."""

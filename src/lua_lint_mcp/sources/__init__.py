"""Documentation sources: extraction, fetching and the aggregated index."""

"""Domain models: cache entries, limiter state and fetch results."""

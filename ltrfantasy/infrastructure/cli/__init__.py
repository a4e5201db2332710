"""Console presentation of command results."""

"""Infrastructure Layer: adapters for storage, HTTP, throttling and the console."""

"""HTTP data access.

Cache-first fetching with retries, TTL classification of URLs, lax response
validation and batched fan-out.
"""

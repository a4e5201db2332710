"""Domain Layer: value objects, entities, events and ports.

Nothing in here performs I/O. Infrastructure adapters implement the
interfaces defined under ``domain.interfaces``.
"""

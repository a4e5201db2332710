"""Persistent storage implementations.

Contains the TTL key-value store, its disk and in-memory backends, and the
repository for bulk entities (players, teams, lineups).
Bounded Context: Cache Management
"""

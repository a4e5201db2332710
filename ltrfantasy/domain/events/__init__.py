"""Domain Event definitions.

Typed payloads published on the notification hub so the fetch layer can
drive live views without knowing about them.
"""

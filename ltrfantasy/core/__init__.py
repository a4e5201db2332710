"""Application layer: services and the command handler."""

"""Local file access for exported snapshots."""

"""In-process publish/subscribe for live data updates."""

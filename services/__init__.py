"""Plan and session services."""

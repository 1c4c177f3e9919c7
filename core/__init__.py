"""Alert event and probe models plus configuration."""

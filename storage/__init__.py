"""Database session adapters."""

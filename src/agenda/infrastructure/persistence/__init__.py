"""Database-backed DocumentStore adapters."""

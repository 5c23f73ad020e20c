"""Core application primitives (settings, database, token verification)."""

"""Small shared helpers (timing)."""

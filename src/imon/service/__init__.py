"""HTTP surface (Flask) for the record service."""

"""
Storage subsystem.

Components:
- document_store.py: SQLite-backed JSON document store (pool, deadlines, transactions)
- record_store.py: read-modify-write protocol for user and sudo records
"""

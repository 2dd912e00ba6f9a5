"""Ingest contact files, split them across workers, and track progress."""

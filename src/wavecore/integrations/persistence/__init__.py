"""File-backed persistence helpers."""

"""Small self-contained helpers."""

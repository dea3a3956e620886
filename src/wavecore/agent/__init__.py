"""Prompt assembly for model calls."""

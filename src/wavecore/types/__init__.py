"""Shared data types."""

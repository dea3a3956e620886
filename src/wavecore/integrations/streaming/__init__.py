"""Streaming wire protocol support."""

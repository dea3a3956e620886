"""Integrations: streaming, persistence and shared utilities."""

"""Execution core: cancellation, turn state, compression, shell and orchestration."""

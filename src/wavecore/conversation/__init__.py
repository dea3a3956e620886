"""Conversation state: block operations, API projection and the store."""

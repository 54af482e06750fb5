"""Shared type contracts for note data on the wire and inside the engine."""

"""Pydantic wire models."""

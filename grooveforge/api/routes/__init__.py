"""API route modules."""
from grooveforge.api.routes import grooves, health, references

__all__ = ["grooves", "health", "references"]

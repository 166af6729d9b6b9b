"""Presentation gateway."""

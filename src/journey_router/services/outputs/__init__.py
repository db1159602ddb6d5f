"""Presentation helpers for calculated routes."""

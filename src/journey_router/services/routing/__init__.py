"""Routing engine: distance matrix, exact solver and attempt orchestration."""

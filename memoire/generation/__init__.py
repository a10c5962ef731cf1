# FILE: memoire/generation/__init__.py
"""Batch answer generation: provider registry, admission control, planner."""

# FILE: memoire/__init__.py
"""Memoire engine: freshness tracking, version lifecycle, template sync and
batch generation for generated answer sets."""

__version__ = "0.1.0"

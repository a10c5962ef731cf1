# FILE: memoire/projects/__init__.py
"""Project inputs: company profile, requirements, reference docs, template."""

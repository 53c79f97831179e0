"""Packaged reference dictionaries (keyword and field-label rules)."""

"""Shared utilities (value coercion, key serialization, datetime)."""

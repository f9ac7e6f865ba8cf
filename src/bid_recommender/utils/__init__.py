"""Shared helpers for unit conversion and rounding."""

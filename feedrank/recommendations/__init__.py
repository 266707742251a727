"""Provide recommendations runtime helpers."""

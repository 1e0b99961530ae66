"""Metrics helpers."""

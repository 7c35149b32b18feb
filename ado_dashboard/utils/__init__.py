"""Shared helpers for the dashboard."""

"""Utility helpers for the server."""

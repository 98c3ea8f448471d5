"""Data models for the HTTP API."""

"""Services implementing the storage operations."""

"""Self hosted file storage with virtual folders."""

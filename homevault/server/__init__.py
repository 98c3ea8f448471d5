"""The HomeVault storage server."""

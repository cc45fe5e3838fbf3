"""HTTP features of the service."""

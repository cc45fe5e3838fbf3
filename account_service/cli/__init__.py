"""Command line interface (``account-service``)."""

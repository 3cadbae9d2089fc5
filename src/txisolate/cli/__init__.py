"""Command line interface for txisolate."""

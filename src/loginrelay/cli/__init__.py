"""Command-line interface for the login relay."""

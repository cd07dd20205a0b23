"""loginrelay: identity-wallet login relay."""

__version__ = "1.0.0"

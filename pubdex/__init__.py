"""Bitcoin public key indexer mapping addresses to their public keys, with a JSON API."""

__version__ = "0.1.0"
"""NatJus backend: technical-note upload pipeline, library, search and chat API."""

__version__ = "1.0.0"

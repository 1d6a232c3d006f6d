"""bookshelf-client – OAuth 2.0 authorization-code client for the Bookshelf API."""

__version__ = "0.1.0"

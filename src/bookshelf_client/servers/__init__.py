"""Starlette web layer for bookshelf-client."""

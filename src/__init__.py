"""Bookshelf service."""

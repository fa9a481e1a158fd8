"""Thin async wrappers around the embedding backends."""

"""Shared contracts, errors and settings."""

"""Middleware for the stock and orders services."""

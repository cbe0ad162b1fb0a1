"""Persistence layer for webhook execution."""

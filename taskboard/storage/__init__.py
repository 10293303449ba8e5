"""Concrete storage collaborators."""

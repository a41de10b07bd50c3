"""Paths, configuration and the error hierarchy."""

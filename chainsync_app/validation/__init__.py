"""Validation of user-entered operation arguments."""

"""Durable records of submitted transactions."""

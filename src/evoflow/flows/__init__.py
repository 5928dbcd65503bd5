"""Prefect flows wrapping genome evaluation."""

"""Mention/target-user interaction pipeline."""

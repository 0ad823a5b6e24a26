"""Adapters for config files and confirmation delivery."""

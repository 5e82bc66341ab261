"""Shared helpers and configuration."""

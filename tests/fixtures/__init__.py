"""Test fixtures for orgsync."""

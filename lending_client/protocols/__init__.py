"""Lending program integrations."""

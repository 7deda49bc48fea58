"""Clients for external collaborators (GitHub, language model)."""

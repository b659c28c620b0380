"""Project source root."""

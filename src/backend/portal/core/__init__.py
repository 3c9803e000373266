"""Configuration, dependencies and shared exceptions."""

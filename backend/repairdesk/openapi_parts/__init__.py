"""Modular pieces for the programmatic OpenAPI builder: registries and schema
helpers kept apart so the builder itself stays a short assembly function."""

__all__ = [
    "constants",
    "helpers",
]

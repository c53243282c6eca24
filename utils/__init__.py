"""Shared helpers: security primitives, request decorators, domain errors."""

"""Core: settings, exceptions, schemas and dependencies."""

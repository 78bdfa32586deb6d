"""Utility modules for common operations.

This package provides reusable utilities for:
- Retry and backoff delay calculation
"""

"""Shared utilities for the pipeline stages."""

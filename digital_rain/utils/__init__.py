"""Shared utilities for Digital Rain."""

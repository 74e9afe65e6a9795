"""Shared utilities for archgraph."""

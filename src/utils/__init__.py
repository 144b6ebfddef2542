"""Shared helpers: paths, logging setup, thread management, config patching."""

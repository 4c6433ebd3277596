"""Cross-module tests: app factory, settings, keys and time helpers."""

"""Bundled data files (the default operations map)."""

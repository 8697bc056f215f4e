"""Bundled JSON schemas describing tool arguments."""

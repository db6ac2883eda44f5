"""Scan-and-prune engine for BonsaiCSS."""

"""
BonsaiCSS - prune unused CSS rules by scanning a project's templates and scripts.

This package provides:
- Glob-based content file resolution
- Multi-syntax class usage scanner with pluggable extractors
- File-level scan cache with optional JSON persistence
- CSS pruning engine built on tinycss2
- CLI and HTTP prune service
"""

__version__ = "0.1.0"

"""
Proof of Reserve Command Line Interface.

This package provides command-line tools for computing the reserve Merkle root,
printing inclusion paths, rendering the tree and serving it over HTTP.
"""

# Import the main CLI entry point
from .main import cli

__all__ = [
    'cli',
]

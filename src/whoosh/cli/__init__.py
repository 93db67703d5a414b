"""
CLI package for Whoosh

This package provides the process entry point of the daemon.
"""

from .interface import main

__all__ = ['main']

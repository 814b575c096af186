"""
Database package for the story reading engine.

This package provides SQLite-based persistence for the story graph,
reader progress and exported reading paths.
"""

from .manager import DatabaseManager

__all__ = ['DatabaseManager']

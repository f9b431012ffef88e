"""
Lifecycle management for a single network listener with graceful shutdown.
"""

__version__ = "0.1.0"

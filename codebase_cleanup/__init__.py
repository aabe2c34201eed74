"""
Codebase Cleanup: classify project files and move the non-essential ones
into a reversible backup store.
"""

__version__ = "0.1.0"

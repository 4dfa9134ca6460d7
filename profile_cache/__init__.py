"""
Resilient fetch-cache layer for slowly-changing profile data.
"""

__version__ = "0.1.0"

"""
Recipe Control Plane — install and revert plugin setup recipes.
"""

__version__ = "0.1.0"

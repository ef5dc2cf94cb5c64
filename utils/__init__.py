"""
utils/ - Shared Utilities
=========================
Logging setup and the exception hierarchy used across all layers.
"""

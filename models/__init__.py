"""
models/ - Domain Models
=======================
Plain dataclasses and enums shared by every layer.
"""

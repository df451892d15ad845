"""
EstateHub listing lifecycle and quota governance API.
"""

__version__ = "1.0.0"

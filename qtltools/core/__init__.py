"""
Cross object shared by every scan and map operation
"""

from .cross import Cross

__all__ = ['Cross']

"""
hipc Core Module

Chain access, transaction lifecycle, storage decoding, configuration and
logging for the hipc client.
"""

__all__ = []

"""
Internal Transactions Module

⚠️ PRIVATE API - Do not use directly!

Scratch file staging used to load and flush pyramid lists.
"""

from tilepyramid._internal.transactions.scratch import ScratchFile

__all__ = ["ScratchFile"]

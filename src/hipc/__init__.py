"""
hipc - Hippius network command-line client

Signs and submits transactions to a Hippius node and reads chain state.

Main Components:
- Identity store: primary and hotkey signing identities on disk
- Transactions: build, sign, submit and watch calls until finalized
- Storage queries: typed point reads and map iteration
- Rankings: reward estimates for ranked miners
"""

__version__ = "0.1.0"
__author__ = "Hippius Development Team"

__all__ = []

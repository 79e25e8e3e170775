"""
DDD Bank

Banking ledger core: clients own and manage accounts, move money between
them in atomic transactions, and a banker manages the client base.
"""

__version__ = "1.0.0"

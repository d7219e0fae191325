"""
Read-only status API over the sync ledger and the local store
"""

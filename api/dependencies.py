"""
FastAPI dependencies shared by the status routes
"""

from fastapi import Depends, HTTPException, Request
from core.database import LocalStore
from replication.ledger import SyncLedger
from replication.reconciler import Reconciler


def get_store(request: Request) -> LocalStore:
    """The LocalStore opened at application startup"""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Local store is not configured")
    return store


def get_ledger(store: LocalStore = Depends(get_store)) -> SyncLedger:
    return SyncLedger(store)


def get_reconciler(store: LocalStore = Depends(get_store)) -> Reconciler:
    return Reconciler(store)

"""
api/routes/vault.py -- Vault entry routes for the SecurePass REST API.

Routes:
  GET    /api/passwords             -- list the caller's entries, insertion order
  POST   /api/passwords             -- add an entry (201)
  DELETE /api/passwords/{entry_id}  -- delete an entry (idempotent, 200)

All routes require a bearer token. The router-level dependency rejects
requests before any handler runs: 401 with no token, 403 with a bad one.
Handlers scope every store call to identity.user_id, never to anything
taken from the request body or path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import MessageResponse, VaultEntryCreate, VaultEntryResponse
from auth.dependencies import get_current_identity
from auth.models import TokenIdentity
from vault.store import VaultStore

router = APIRouter(dependencies=[Depends(get_current_identity)])


@router.get("/passwords", response_model=list[VaultEntryResponse])
def list_entries(
    request: Request,
    identity: TokenIdentity = Depends(get_current_identity),
) -> list[VaultEntryResponse]:
    """Return the authenticated user's entries in the order they were added."""
    vault: VaultStore = request.app.state.vault
    return [VaultEntryResponse.from_entry(e) for e in vault.list_entries(identity.user_id)]


@router.post("/passwords", response_model=VaultEntryResponse, status_code=201)
def add_entry(
    request: Request,
    body: VaultEntryCreate,
    identity: TokenIdentity = Depends(get_current_identity),
) -> VaultEntryResponse:
    """Store a new site credential for the authenticated user."""
    vault: VaultStore = request.app.state.vault
    entry = vault.add_entry(identity.user_id, body.site, body.entry_username, body.secret_value)
    return VaultEntryResponse.from_entry(entry)


@router.delete("/passwords/{entry_id}", response_model=MessageResponse)
def delete_entry(
    request: Request,
    entry_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
) -> MessageResponse:
    """Delete one of the authenticated user's entries. Unknown ids still return 200."""
    vault: VaultStore = request.app.state.vault
    vault.delete_entry(identity.user_id, entry_id)
    return MessageResponse(message="Password deleted successfully.")

"""
Connection Routes

User-facing endpoints for:
- Listing available providers
- Testing credentials
- Connecting and disconnecting providers
- Syncing usage on demand
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List

from devcosts.database import get_db
from devcosts.app import models, schemas
from devcosts.app.auth import get_current_active_user
from devcosts.app.dependencies import get_registry, get_sync_service, get_vault
from devcosts.app.usage_sync import (
    ConnectionNotFound, CredentialVault, ProviderRegistry, UnknownProvider, UsageSyncService
)


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connections", tags=["connections"])


def _active_adapter(registry: ProviderRegistry, provider_id: str, credentials: dict):
    """Resolve an implemented adapter and check required credential fields."""
    if not registry.is_active(provider_id):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid provider: {provider_id}"
        )

    adapter = registry.resolve(provider_id)
    missing = adapter.missing_credentials(credentials)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required credentials: {', '.join(missing)}"
        )
    return adapter


@router.get("/providers", response_model=List[schemas.Provider])
def list_providers(
    registry: ProviderRegistry = Depends(get_registry),
    current_user: models.User = Depends(get_current_active_user)
):
    """List every registered provider, including ones not implemented yet."""
    return [adapter.describe() for adapter in registry.list_all()]


@router.get("", response_model=List[schemas.Connection])
def list_connections(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user)
):
    return db.query(models.Connection).filter(
        models.Connection.user_id == current_user.id
    ).order_by(models.Connection.created_at.desc(), models.Connection.id.desc()).all()


@router.post("/test", response_model=schemas.ConnectionTestResponse)
async def test_connection(
    request: schemas.ConnectionTestRequest,
    registry: ProviderRegistry = Depends(get_registry),
    current_user: models.User = Depends(get_current_active_user)
):
    """
    Check credentials against the provider without storing anything.

    Example:
        POST /connections/test
        {"provider": "openai", "credentials": {"apiKey": "sk-..."}}

        Response:
        {"success": false, "error": "Invalid credentials"}
    """
    adapter = _active_adapter(registry, request.provider, request.credentials)
    result = await adapter.test_connection(request.credentials)
    return schemas.ConnectionTestResponse(success=result.success, error=result.error)


@router.post("", response_model=schemas.Connection, status_code=status.HTTP_201_CREATED)
def create_connection(
    request: schemas.ConnectionCreate,
    db: Session = Depends(get_db),
    vault: CredentialVault = Depends(get_vault),
    registry: ProviderRegistry = Depends(get_registry),
    current_user: models.User = Depends(get_current_active_user)
):
    """
    Store a connection with encrypted credentials.

    The client is expected to call /connections/test first; this endpoint
    does not contact the provider.
    """
    _active_adapter(registry, request.provider, request.credentials)

    existing = db.query(models.Connection).filter(
        models.Connection.user_id == current_user.id,
        models.Connection.provider == request.provider
    ).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provider already connected"
        )

    connection = models.Connection(
        user_id=current_user.id,
        provider=request.provider,
        credentials=vault.encrypt_credentials(request.credentials),
        is_active=True
    )
    db.add(connection)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent create for the same provider
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Provider already connected"
        )
    db.refresh(connection)

    logger.info(f"User {current_user.id} connected {request.provider} (connection {connection.id})")
    return connection


@router.post("/{connection_id}/sync")
async def sync_connection(
    connection_id: int,
    service: UsageSyncService = Depends(get_sync_service),
    current_user: models.User = Depends(get_current_active_user)
):
    """
    Sync the last 30 days of usage for one connection.

    Example:
        POST /connections/1/sync

        Response:
        {"success": true, "recordsCount": 30, "error": null}
    """
    try:
        result = await service.sync_connection(connection_id, user_id=current_user.id)
    except ConnectionNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")
    except UnknownProvider:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid provider")

    response = schemas.SyncResponse(
        success=result.success,
        records_count=result.records_count,
        error=result.error
    )
    return JSONResponse(content=response.model_dump(by_alias=True))


@router.delete("/{connection_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_connection(
    connection_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_active_user)
):
    """Disconnect a provider. Its usage records are deleted with it."""
    connection = db.query(models.Connection).filter(
        models.Connection.id == connection_id,
        models.Connection.user_id == current_user.id
    ).first()
    if not connection:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Connection not found")

    db.delete(connection)
    db.commit()
    logger.info(f"User {current_user.id} deleted connection {connection_id}")

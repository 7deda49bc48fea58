from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from ..database import get_db, get_redis
from ..models.api_key import APIKey
from ..schemas import APIKeyInfo, APIKeyRequest, APIKeyResponse, APIKeyUpdate
from ..utils.auth import APIKeyManager, effective_limit
from .dependencies import get_current_api_key, require_admin

router = APIRouter(prefix="/v1/api-keys", tags=["API Keys"])


def to_info(api_key: APIKey) -> APIKeyInfo:
    return APIKeyInfo(
        id=api_key.id,
        name=api_key.name,
        owner_id=api_key.owner_id,
        description=api_key.description,
        created_at=api_key.created_at,
        last_used=api_key.last_used,
        is_active=api_key.is_active,
        rate_limit=effective_limit(api_key),
        usage_count=api_key.usage_count,
    )


@router.post(
    "",
    response_model=APIKeyResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def create_api_key(request: APIKeyRequest, db: Session = Depends(get_db)):
    """Issue a new API key. The key itself is only ever returned here."""
    return APIKeyManager(db, get_redis()).create_api_key(request)


@router.get(
    "",
    response_model=List[APIKeyInfo],
    dependencies=[Depends(require_admin)],
)
async def list_api_keys(
    owner_id: Optional[str] = Query(None, description="Only keys of this owner"),
    db: Session = Depends(get_db),
):
    """List API keys, newest first, without key material."""
    keys = APIKeyManager(db).list_api_keys(owner_id)
    return [to_info(api_key) for api_key in keys]


@router.get("/current", response_model=APIKeyInfo)
async def get_current_key_info(current_key: APIKey = Depends(get_current_api_key)):
    """Get information about the current API key."""
    return to_info(current_key)


@router.put(
    "/{key_id}",
    response_model=APIKeyInfo,
    dependencies=[Depends(require_admin)],
)
async def update_api_key(
    key_id: str, request: APIKeyUpdate, db: Session = Depends(get_db)
):
    """Rename, describe, (de)activate or re-limit an API key."""
    api_key = APIKeyManager(db).update_api_key(key_id, request)
    if api_key is None:
        raise HTTPException(status_code=404, detail="API key not found")
    return to_info(api_key)


@router.delete("/{key_id}", dependencies=[Depends(require_admin)])
async def delete_api_key(key_id: str, db: Session = Depends(get_db)):
    """Delete an API key (soft delete: the key is deactivated)."""
    if not APIKeyManager(db).deactivate(key_id):
        raise HTTPException(status_code=404, detail="API key not found")

    return {"message": "API key deactivated successfully"}

"""API key validation routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from ..database import get_db, get_redis
from ..exceptions import InvalidCredential
from ..schemas import ValidateRequest, ValidateResponse
from ..utils.auth import APIKeyManager

router = APIRouter(prefix="/v1/validate", tags=["API Keys"])


def _validate(key: Optional[str], db: Session) -> ValidateResponse:
    if not key or not key.strip():
        raise InvalidCredential()

    api_key = APIKeyManager(db, get_redis()).verify_api_key(key)
    if api_key is None:
        raise InvalidCredential()

    return ValidateResponse(name=api_key.name, created_at=api_key.created_at)


@router.post("", response_model=ValidateResponse)
async def validate_key(request: ValidateRequest, db: Session = Depends(get_db)):
    """Check whether an API key exists (does not consume quota)."""
    return _validate(request.api_key, db)


@router.get("", response_model=ValidateResponse)
async def validate_key_from_header(
    api_key: Optional[str] = Header(None, alias="x-api-key"),
    api_key_param: Optional[str] = Query(None, alias="apiKey"),
    db: Session = Depends(get_db),
):
    """Same as ``POST``, reading the key from ``x-api-key`` or ``?apiKey=``."""
    return _validate(api_key or api_key_param, db)

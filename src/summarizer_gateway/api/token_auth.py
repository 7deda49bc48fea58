from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..utils.tokens import TokenManager
from .dependencies import require_admin

router = APIRouter(prefix="/auth", tags=["Demo Tokens"])


class DemoTokenRequest(BaseModel):
    """Request to mint a demo token for a signed-in user."""

    email: str = Field(..., min_length=3, description="Verified email of the user")
    expires_in_minutes: Optional[int] = Field(
        60, description="Token expiry in minutes", ge=1, le=1440
    )  # Max 1 day


class DemoTokenResponse(BaseModel):
    """Demo token creation response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: str
    email: str


class VerifyTokenRequest(BaseModel):
    token: str = Field(..., description="Demo token to check")


@router.post(
    "/demo-token",
    response_model=DemoTokenResponse,
    dependencies=[Depends(require_admin)],
)
async def create_demo_token(request: DemoTokenRequest):
    """
    Mint a signed demo token.

    Called by the session layer after it has signed a user in. The user then
    sends it as ``x-demo-token`` alongside ``x-demo-user``.
    """
    token_data = TokenManager().create_demo_token(
        email=request.email.strip(),
        expires_in=timedelta(minutes=request.expires_in_minutes),
    )
    return DemoTokenResponse(**token_data)


@router.post("/demo-token/verify")
async def verify_demo_token(request: VerifyTokenRequest):
    """Check a demo token and return the email it was issued for."""
    email = TokenManager().verify_demo_token(request.token)

    if not email:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return {"valid": True, "email": email, "message": "Token is valid"}

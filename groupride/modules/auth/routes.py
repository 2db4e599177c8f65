from fastapi import APIRouter, Depends
from groupride.modules.auth.schemas import (
    LoginRequest, RefreshRequest, RegisterRequest, TokenResponse, RegisterResponse
)
from groupride.modules.auth.service import AuthService
from groupride.core.dependencies import get_auth_service, get_current_token, get_current_user_id
from typing import Dict

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register(
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Sign up a rider; Supabase sends the confirmation email"""
    return service.register(register_data)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Email/password login returning an access and refresh token"""
    return service.login(login_data)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Keep the session alive without asking for the password again"""
    return service.refresh(body.refresh_token)


@router.post("/logout", status_code=204)
async def logout(
    token: str = Depends(get_current_token),
    service: AuthService = Depends(get_auth_service)
):
    service.logout(token)
    return None


@router.get("/session")
async def session(
    current_user: Dict = Depends(get_current_user_id),
):
    """Who the bearer token belongs to; 401 sends the front end to /login"""
    return {
        "id": current_user["id"],
        "email": current_user["email"],
        "full_name": current_user["user_metadata"].get("full_name"),
    }

"""Administrator login routes backed by the signed session cookie."""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import BaseModel

from examroom.auth_utils import check_admin_credentials
from examroom.deps import require_admin

logger = logging.getLogger(__name__)

router = APIRouter()


class AdminLoginIn(BaseModel):
    username: str = ""
    password: str = ""


@router.post("/admin-login")
def admin_login(request: Request, payload: AdminLoginIn = Body(...)):
    if not payload.username or not payload.password:
        raise HTTPException(status_code=400, detail="Username and password are required!")
    if not check_admin_credentials(payload.username, payload.password):
        logger.warning("Failed administrator login for %r", payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    request.session["admin"] = payload.username
    return {"message": "Login successful!"}


@router.post("/admin-logout")
def admin_logout(request: Request):
    request.session.clear()
    return {"message": "Logged out"}


@router.get("/verify-admin")
def verify_admin(admin: str = Depends(require_admin)):
    return {"message": "Token is valid", "admin": admin}

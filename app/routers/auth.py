# Signup, login and session routes

import datetime
import logging
from fastapi import APIRouter, HTTPException, Header, Cookie, Depends, Response
from typing import Optional
import repository
import utils
import schemas
from routers.tags import DEFAULT_TAGS

logger = logging.getLogger(__name__)
router = APIRouter()

@router.post("/signup", response_model=schemas.User, status_code=201)
async def signup(
    payload: schemas.SignupRequest,
    repo=Depends(repository.get_repository),
):
    """Register a user, with a personal calendar and the default tags"""
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="email and password are required")

    if len(payload.password) < utils.MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"password must be at least {utils.MIN_PASSWORD_LENGTH} characters")

    email = payload.email.strip().lower()

    try:
        if repo.get_user_by_email(email):
            raise HTTPException(status_code=409, detail="email already in use")

        user = repo.create_user(email, utils.hash_password(payload.password), payload.name or None, DEFAULT_TAGS)
        logger.info(f"New user created: {user['id']}")
        return user

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

@router.post("/login", response_model=schemas.LoginResponse)
async def login(
    payload: schemas.LoginRequest,
    response: Response,
    repo=Depends(repository.get_repository),
):
    """Check credentials and open a session, the token is also set as an HttpOnly cookie"""
    if not payload.email or not payload.password:
        raise HTTPException(status_code=400, detail="email and password are required")

    try:
        user = repo.get_user_by_email(payload.email.strip().lower())
        if not user or not utils.verify_password(payload.password, user["password_hash"]):
            raise HTTPException(status_code=401, detail="invalid credentials")

        token = utils.generate_token()
        expires_at = utils.utc_now() + datetime.timedelta(days=utils.TOKEN_TTL_DAYS)
        repo.create_session(user["id"], utils.hash_token(token), expires_at)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error logging in: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

    response.set_cookie(
        utils.TOKEN_COOKIE_NAME,
        token,
        httponly=True,
        samesite="lax",
        secure=utils.COOKIE_SECURE,
        max_age=utils.TOKEN_TTL_DAYS * 24 * 60 * 60,
    )
    logger.info(f"User {user['id']} logged in")
    user = {key: value for key, value in user.items() if key != "password_hash"}
    return {"user": user, "access_token": token}

@router.get("/me", response_model=schemas.User)
async def me(user=Depends(utils.get_current_user)):
    """Get the logged in user"""
    return user

@router.patch("/me", response_model=schemas.User)
async def update_me(
    payload: schemas.UserUpdate,
    user=Depends(utils.get_current_user),
    repo=Depends(repository.get_repository),
):
    """Update name and UTC offset of the logged in user"""
    fields = payload.model_dump(exclude_unset=True)
    try:
        updated = repo.update_user(user["id"], fields)
        logger.info(f"Updated user {user['id']}")
        return updated
    except Exception as e:
        logger.error(f"Error updating user: {e}")
        raise HTTPException(status_code=500, detail="Internal server error")

@router.post("/logout", response_model=schemas.MessageResponse)
async def logout(
    response: Response,
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Cookie(None),
    repo=Depends(repository.get_repository),
):
    """End the session of the request token and clear the cookie"""
    token = utils.get_request_token(authorization, access_token)
    if token:
        try:
            repo.delete_session(utils.hash_token(token))
        except Exception as e:
            logger.error(f"Error deleting session: {e}")
            raise HTTPException(status_code=500, detail="Internal server error")

    response.delete_cookie(utils.TOKEN_COOKIE_NAME, httponly=True, samesite="lax", secure=utils.COOKIE_SECURE)
    return {"message": "Logged out"}

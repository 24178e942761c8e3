"""Authentication endpoints: registration, login, session."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from assetdesk.core.config import settings
from assetdesk.core.deps import COOKIE_NAME, get_current_user, get_db, require_csrf_header
from assetdesk.core.rate_limit import AUTH_LIMIT, limiter
from assetdesk.core.security import create_session_token
from assetdesk.db.models import User
from assetdesk.schemas.attestation import InviteValidationResponse
from assetdesk.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserRead
from assetdesk.services import invite_conversion_service, user_service

router = APIRouter(prefix="/auth", tags=["auth"])


def _issue_session(response: Response, user: User) -> str:
    token = create_session_token(user.id, user.email, user.role)
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=settings.JWT_EXPIRES_HOURS * 3600,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/",
    )
    return token


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=201,
    dependencies=[Depends(require_csrf_header)],
)
@limiter.limit(AUTH_LIMIT)
def register(
    request: Request,
    response: Response,
    body: RegisterRequest,
    db: Session = Depends(get_db),
):
    """
    Create an account for an already-authenticated identity.

    Links existing assets to the new account and converts open attestation
    invites; redirect_to_attestations tells the client to go straight to
    the attestation page.
    """
    try:
        result = user_service.register_user(db, body)
    except user_service.UserConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))

    token = _issue_session(response, result.user)
    return AuthResponse(
        user=UserRead.model_validate(result.user),
        token=token,
        redirect_to_attestations=result.conversion.redirect_to_attestations,
        converted_record_ids=result.conversion.converted_record_ids,
    )


@router.post("/login", response_model=AuthResponse, dependencies=[Depends(require_csrf_header)])
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: Session = Depends(get_db),
):
    """Start a session for an identity verified upstream."""
    user = user_service.login(db, body.email)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown or disabled account")
    token = _issue_session(response, user)
    return AuthResponse(user=UserRead.model_validate(user), token=token)


@router.get("/me", response_model=UserRead)
def get_me(user: User = Depends(get_current_user)):
    return user


@router.post("/logout", dependencies=[Depends(require_csrf_header)])
def logout(response: Response, user: User = Depends(get_current_user)):
    """Clear session cookie."""
    response.delete_cookie(COOKIE_NAME, path="/")
    return {"status": "logged_out"}


@router.get("/validate-invite/{token}", response_model=InviteValidationResponse)
def validate_invite(token: str, db: Session = Depends(get_db)):
    """Public check used by the registration page to prefill the form."""
    result = invite_conversion_service.validate_invite_token(db, token)
    return InviteValidationResponse(**result.__dict__)

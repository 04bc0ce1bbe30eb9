import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import HTMLResponse
from sqlmodel import Session

from app.core.auth import ensure_same_identity, get_bearer_token, require_auth
from app.core.errors import AppError
from app.core.identity_provider import IdentityProviderClient, get_identity_provider
from app.database import get_session
from app.repositories.profile_repo import ProfileRepository
from app.schemas.auth import (
    AuthPayload,
    CallbackResponse,
    CurrentUserRead,
    LoginRequest,
    MessageResponse,
    Principal,
    RegisterRequest,
    ResendConfirmationRequest,
    VerifyCallbackRequest,
)
from app.schemas.profile import ProfileRead, ProfileUpdate
from app.services.auth_service import AuthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

repo = ProfileRepository()
service = AuthService(repo)


@router.post("/register", response_model=AuthPayload, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """
    Create an account.

    - `session` is null while the confirmation e-mail is pending.
    """
    return service.register(session, provider, payload)


@router.post("/login", response_model=AuthPayload)
def login(
    payload: LoginRequest,
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """Sign in with email + password. 401 on bad credentials."""
    return service.login(provider, payload)


@router.post("/logout", response_model=MessageResponse)
def logout(
    token: str = Depends(get_bearer_token),
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """
    Revoke the caller's session.

    Always 200; `success` tells whether Supabase accepted the sign-out.
    """
    return service.logout(provider, token)


@router.post("/resend-confirmation", response_model=MessageResponse)
def resend_confirmation(
    payload: ResendConfirmationRequest,
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """Send the sign-up confirmation e-mail again."""
    return service.resend_email_confirmation(provider, str(payload.email))


@router.get("/me", response_model=CurrentUserRead)
def read_me(
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
):
    """
    Return the caller and their stored profile.

    Auth:
      - Requires valid Supabase JWT.
    """
    return service.get_current_user(session, current_user)


@router.patch("/profile", response_model=ProfileRead)
def update_profile(
    payload: ProfileUpdate,
    session: Session = Depends(get_session),
    current_user: Principal = Depends(require_auth),
):
    """
    Update the authenticated user's profile (partial update).

    Currently, only `username` is editable.
    """
    identity_id = payload.id or current_user.id
    ensure_same_identity(current_user, identity_id)
    return service.update_profile(session, identity_id, payload, email=current_user.email)


@router.get("/callback", response_class=HTMLResponse, include_in_schema=False)
def email_verification_page():
    """
    Landing page of the confirmation link.

    Supabase puts the session in the URL fragment, which never reaches the
    server, so the page reads it in the browser and POSTs it to
    /auth/verify-callback, then shows the success or error panel.
    """
    logger.info("Email verification page requested")
    return HTMLResponse(CALLBACK_PAGE)


@router.post("/verify-callback", response_model=CallbackResponse)
def verify_callback(
    payload: VerifyCallbackRequest,
    session: Session = Depends(get_session),
    provider: IdentityProviderClient = Depends(get_identity_provider),
):
    """
    Confirm the session issued after e-mail verification.

    Always 200; failures come back as `success: false` with an `error`.
    """
    logger.info("Verification callback received (type=%s)", payload.type)
    try:
        data = service.verify_auth_callback(session, provider, payload.access_token)
    except AppError as exc:
        logger.warning("Verification callback rejected: %s", exc.message)
        return CallbackResponse(success=False, message="Verification failed", error=exc.message)

    message = "Email verified successfully"
    if data.profile is None:
        message += "; profile setup is still pending"
    return CallbackResponse(success=True, message=message, data=data)


CALLBACK_PAGE = """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>Verifying your email...</title>
  <style>
    body { font-family: Arial, sans-serif; text-align: center; padding: 50px; background: #f5f5f5; }
    .container { max-width: 600px; margin: 0 auto; background: #fff; padding: 40px;
                 border-radius: 10px; box-shadow: 0 2px 10px rgba(0,0,0,0.1); }
    .success { color: #4CAF50; }
    .error { color: #f44336; }
    .loading { color: #FF9800; }
    .spinner { border: 4px solid #f3f3f3; border-top: 4px solid #3498db; border-radius: 50%;
               width: 40px; height: 40px; animation: spin 2s linear infinite; margin: 20px auto; }
    @keyframes spin { 0% { transform: rotate(0deg); } 100% { transform: rotate(360deg); } }
    button { color: #fff; padding: 10px 20px; border: none; border-radius: 5px;
             cursor: pointer; margin-top: 20px; }
  </style>
</head>
<body>
  <div class="container">
    <div id="loading">
      <div class="spinner"></div>
      <h2 class="loading">Verifying your email...</h2>
      <p>Please wait a moment.</p>
    </div>
    <div id="success" style="display: none;">
      <h1 class="success">Your email has been verified!</h1>
      <p id="success-message">Your account is now active.</p>
      <p>You can sign in from the app.</p>
      <button style="background: #4CAF50;" onclick="window.close()">Close window</button>
    </div>
    <div id="error" style="display: none;">
      <h1 class="error">Verification failed</h1>
      <p id="error-message">An unknown error occurred.</p>
      <button style="background: #f44336;" onclick="window.location.reload()">Try again</button>
    </div>
  </div>
  <script>
    function getHashParams() {
      var params = {};
      var hash = window.location.hash.substring(1);
      if (!hash) { return params; }
      hash.split('&').forEach(function (pair) {
        var idx = pair.indexOf('=');
        if (idx > 0) {
          params[decodeURIComponent(pair.slice(0, idx))] = decodeURIComponent(pair.slice(idx + 1));
        }
      });
      return params;
    }

    function show(id) {
      document.getElementById('loading').style.display = 'none';
      document.getElementById(id).style.display = 'block';
    }

    async function processAuthentication() {
      try {
        var params = getHashParams();
        if (params.error) {
          throw new Error(params.error_description || params.error);
        }
        if (!params.access_token || params.type !== 'signup') {
          throw new Error('Invalid verification parameters.');
        }
        var callbackUrl = window.location.pathname.replace(/callback\\/?$/, 'verify-callback');
        var response = await fetch(callbackUrl, {
          method: 'POST',
          headers: { 'Content-Type': 'application/json' },
          body: JSON.stringify({
            access_token: params.access_token,
            refresh_token: params.refresh_token,
            expires_at: params.expires_at,
            expires_in: params.expires_in,
            type: params.type
          })
        });
        var result = await response.json();
        if (!result.success) {
          throw new Error(result.error || result.message || 'Verification failed.');
        }
        document.getElementById('success-message').textContent = result.message;
        show('success');
      } catch (error) {
        document.getElementById('error-message').textContent = error.message;
        show('error');
      }
    }

    window.addEventListener('load', processAuthentication);
  </script>
</body>
</html>
"""

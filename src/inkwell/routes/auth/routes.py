"""
# Authentication Routes

Account registration and session endpoints under `/api/auth`.

## API Endpoints

- `POST /api/auth/signup` - Register (role `author`), returns token + profile, sets cookie (201)
- `POST /api/auth/login` - Exchange email + password for a token, sets cookie
- `POST /api/auth/logout` - Clear the session cookie (auth)
- `POST /api/auth/refresh` - Issue a fresh token (auth)
- `PUT /api/auth/change-password` - Replace the password after verifying the current one (auth)
- `GET /api/auth/profile` - Current user with expanded bookmarks (auth)

## Error Contract

- Duplicate email or username: 400 `{"message": "User already exists", "errors": [{field, message}]}`
- Unknown email or wrong password: 401 "Invalid credentials" (same message for both)
- Wrong current password on change: 401 "Current password is incorrect"

## Usage Example

```python
response = await client.post("/api/auth/signup", json={
    "username": "alice", "email": "alice@example.com", "password": "secret1"
})
token = response.json()["token"]
```
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pymongo.errors import DuplicateKeyError

from inkwell.database import PostRepository, UserRepository
from inkwell.managers.logging_manager import get_logger
from inkwell.models.user_models import UserProfileResponse, UserResponse, new_user_document
from inkwell.routes.auth.dependencies import get_current_principal
from inkwell.routes.auth.models import (
    AuthenticatedPrincipal,
    AuthResponse,
    LoginRequest,
    PasswordChangeRequest,
    SignupRequest,
    validate_password_strength,
)
from inkwell.routes.auth.services import (
    clear_auth_cookie,
    create_access_token,
    hash_password,
    set_auth_cookie,
    verify_password,
)
from inkwell.routes.dependencies import get_post_repository, get_user_repository
from inkwell.utils.logging_utils import log_security_event

logger = get_logger(prefix="[Auth Routes]")

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _conflict(email_taken: bool, username_taken: bool) -> HTTPException:
    errors = []
    if email_taken:
        errors.append({"field": "email", "message": "Email already registered"})
    if username_taken:
        errors.append({"field": "username", "message": "Username already taken"})
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST, detail={"message": "User already exists", "errors": errors}
    )


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    request: Request,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
):
    """
    Register a new account.

    New accounts get the `author` role. No document is written when the email or username is
    already taken.

    Returns:
        AuthResponse: `{message, token, user}`; the token is also set as the session cookie.

    Raises:
        HTTPException(400): Email and/or username already registered.
    """
    try:
        conflicts = await users.find_conflicts(payload.email, payload.username)
        if conflicts["email"] or conflicts["username"]:
            log_security_event("signup_conflict", payload.username, _client_ip(request), False, conflicts)
            raise _conflict(conflicts["email"], conflicts["username"])

        document = new_user_document(payload.username, payload.email, hash_password(payload.password))
        try:
            user = await users.create(document)
        except DuplicateKeyError:
            # Lost a race with a concurrent signup for the same email or username
            conflicts = await users.find_conflicts(payload.email, payload.username)
            raise _conflict(conflicts["email"], conflicts["username"])

        token = create_access_token(user["_id"])
        set_auth_cookie(response, token)
        log_security_event("signup", payload.username, _client_ip(request), True)

        user.pop("password", None)
        return AuthResponse(
            message="User registered successfully",
            token=token,
            user=UserResponse.from_document(user, include_private=True),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to register user: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error during registration")


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    users: UserRepository = Depends(get_user_repository),
):
    """
    Authenticate with email and password.

    Unknown emails and wrong passwords produce the same 401 so the endpoint does not reveal which
    accounts exist. A successful login records `last_login`.
    """
    try:
        user = await users.find_by_email(payload.email, with_password=True)
        if user is None or not verify_password(payload.password, user.get("password", "")):
            log_security_event("login", payload.email, _client_ip(request), False)
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

        await users.touch_last_login(user["_id"])
        token = create_access_token(user["_id"])
        set_auth_cookie(response, token)
        log_security_event("login", user.get("username"), _client_ip(request), True)

        user.pop("password", None)
        return AuthResponse(
            message="Login successful",
            token=token,
            user=UserResponse.from_document(user, include_private=True),
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to log in: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error during login")


@router.post("/logout")
async def logout(response: Response, principal: AuthenticatedPrincipal = Depends(get_current_principal)):
    clear_auth_cookie(response)
    logger.info("User %s logged out", principal.username)
    return {"message": "Logged out successfully"}


@router.post("/refresh")
async def refresh_token(response: Response, principal: AuthenticatedPrincipal = Depends(get_current_principal)):
    """Issue a new token for the current session and reset the cookie."""
    token = create_access_token(principal.id)
    set_auth_cookie(response, token)
    return {"message": "Token refreshed successfully", "token": token}


@router.put("/change-password")
async def change_password(
    payload: PasswordChangeRequest,
    request: Request,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
):
    """
    Change the current user's password.

    Raises:
        HTTPException(400): A password is missing or the new one is too weak.
        HTTPException(401): The current password does not match.
    """
    if not payload.current_password or not payload.new_password:
        raise HTTPException(status_code=400, detail="Current password and new password are required")
    reason = validate_password_strength(payload.new_password)
    if reason:
        raise HTTPException(status_code=400, detail=reason)

    try:
        user = await users.find_by_id(principal.id, with_password=True)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        if not verify_password(payload.current_password, user.get("password", "")):
            log_security_event("password_change", principal.username, _client_ip(request), False)
            raise HTTPException(status_code=401, detail="Current password is incorrect")

        await users.set_password(principal.id, hash_password(payload.new_password))
        log_security_event("password_change", principal.username, _client_ip(request), True)
        return {"message": "Password changed successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to change password: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")


@router.get("/profile", response_model=UserProfileResponse)
async def get_profile(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    users: UserRepository = Depends(get_user_repository),
    posts: PostRepository = Depends(get_post_repository),
):
    """Current user's full profile with bookmarks expanded to `{id, title, slug, featuredImage, excerpt}`."""
    try:
        user = await users.find_by_id(principal.id)
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")

        bookmark_ids = user.get("bookmarks") or []
        found = await posts.find_many_by_ids(
            bookmark_ids, {"title": 1, "slug": 1, "featured_image": 1, "excerpt": 1}
        )
        bookmarks = [found[str(b)] for b in bookmark_ids if str(b) in found]
        return UserProfileResponse(user=UserResponse.from_document(user, include_private=True, bookmarks=bookmarks))
    except HTTPException:
        raise
    except Exception as e:
        logger.error("Failed to load profile: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail="Server error")

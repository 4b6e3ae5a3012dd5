# migrant-health-be/auth.py
import base64
import time
from typing import Optional
from urllib.parse import urlencode

import httpx
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from utils import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REDIRECT_URI

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

# Demo accounts, no hashing. Do not deploy this anywhere real.
USERS = [
    {"id": 1, "loginId": "admin@kerala.gov", "password": "admin", "role": "Super Admin", "name": "Dr. Arun Kumar", "district": "All"},
    {"id": 2, "loginId": "wayanad@kerala.gov", "password": "district", "role": "District Admin", "name": "Dr. Priya Menon", "district": "Wayanad"},
    {"id": 3, "loginId": "worker", "password": "worker", "role": "Field Worker", "name": "Rajesh K", "district": "Wayanad"},
    {"id": 4, "loginId": "phc", "password": "phc", "role": "PHC Staff", "name": "Nurse Anjali", "district": "Wayanad"},
]

ADMIN_ROLES = ["Super Admin", "District Admin"]

security = HTTPBearer(auto_error=False)


class GoogleAuthError(Exception):
    pass


def public_user(user: dict, **extra) -> dict:
    out = {
        "id": user["id"],
        "username": user["loginId"],
        "role": user["role"],
        "name": user["name"],
        "district": user["district"],
    }
    out.update(extra)
    return out


def find_user(login_id: str) -> Optional[dict]:
    for u in USERS:
        if u["loginId"] == login_id:
            return u
    return None


def authenticate(username: Optional[str], password: Optional[str]) -> Optional[dict]:
    for u in USERS:
        if u["loginId"] == username and u["password"] == password:
            return u
    return None


def issue_token(login_id: str) -> str:
    raw = f"{login_id}:{int(time.time() * 1000)}"
    return base64.b64encode(raw.encode()).decode()


def decode_token(token: Optional[str]) -> Optional[dict]:
    """Resolve a login token back to its demo user.

    The timestamp half of the token is never checked, so tokens do not expire.
    """
    if not token:
        return None
    try:
        decoded = base64.b64decode(token).decode("ascii")
    except ValueError:
        return None
    return find_user(decoded.split(":")[0])


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Optional[dict]:
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def can_manage_patient(user: Optional[dict], patient) -> bool:
    """Admins may act on patients in their own district; "All" covers every district."""
    if not user or user.get("role") not in ADMIN_ROLES:
        return False
    return user.get("district") in ("All", patient.current_location)


def require_role(allowed_roles: list):
    def _inner(user=Depends(get_current_user)):
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
        if user.get("role") not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return user
    return _inner


# === Google sign-in (demo only) ===
def google_configured() -> bool:
    return bool(GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET)


def google_auth_url() -> str:
    params = {
        "client_id": GOOGLE_CLIENT_ID,
        "redirect_uri": GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def exchange_google_code(code: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> dict:
    """Trade an authorization code for the signed-in Google profile.

    Profile fields come from the id_token claims when present, otherwise from
    the userinfo endpoint. The id_token signature is not verified.
    """
    async with httpx.AsyncClient(timeout=10, transport=transport) as client:
        response = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET,
                "redirect_uri": GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        tokens = response.json()
        access_token = tokens.get("access_token")
        if not access_token:
            raise GoogleAuthError("Failed to get access token")

        profile = {}
        if tokens.get("id_token"):
            try:
                profile = jwt.get_unverified_claims(tokens["id_token"])
            except JWTError:
                profile = {}

        if not profile.get("email"):
            info = await client.get(
                GOOGLE_USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            profile = info.json()

    return {
        "id": profile.get("sub") or profile.get("id"),
        "email": profile.get("email"),
        "name": profile.get("name"),
        "picture": profile.get("picture"),
    }


def google_session(profile: dict) -> tuple:
    token = base64.b64encode(f"google:{profile['email']}:{int(time.time() * 1000)}".encode()).decode()
    user = {
        "id": profile.get("id"),
        "username": profile.get("email"),
        "name": profile.get("name"),
        "role": "Field Worker",
        "district": "All",
        "profilePicture": profile.get("picture"),
        "loginMethod": "google",
    }
    return token, user

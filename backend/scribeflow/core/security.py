# scribeflow/core/security.py
"""
Security module for authentication.
Argon2 password hashes for team members and the JWT access tokens the login
endpoint hands out. Authorization (who may do what) lives in
scribeflow.services.authorization.
"""
import os
import datetime as dt
import jwt  # PyJWT
from passlib.context import CryptContext
from dotenv import load_dotenv
from pathlib import Path

ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(dotenv_path=ENV_PATH)

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

# Token settings (JWT_SECRET must be overridden outside dev)
JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret")
JWT_ISSUER = os.getenv("JWT_ISSUER", "scribeflow")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
JWT_ALG = "HS256"

def hash_password(plain: str) -> str:
    """Argon2 hash of a team member's password, salted per call."""
    return pwd_context.hash(plain)

def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)

def create_access_token(user_id: str, role: str) -> str:
    """
    Issue an access token for a logged-in team member.

    The role claim only tells the frontend which landing screen to show
    (worker dashboard, review queue, analytics). Protected operations never
    trust it; the authorization gate re-reads the role from the users table.
    """
    issued = dt.datetime.now(dt.timezone.utc)
    claims = {
        "sub": user_id,
        "role": role,
        "iss": JWT_ISSUER,
        "iat": issued,
        "exp": issued + dt.timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALG)

def decode_access_token(token: str) -> dict:
    """
    Validate signature, expiry and issuer, and return the claims.

    Raises:
        jwt.ExpiredSignatureError: token is past its exp
        jwt.InvalidTokenError: anything else (bad signature, wrong issuer, garbage)
    """
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG], issuer=JWT_ISSUER)

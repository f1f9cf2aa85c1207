"""
Authentication primitives:

  TokenService   — issues / verifies HS256 JWT bearer credentials
  Identity       — Anonymous | Authenticated(user_id), derived per request
  get_identity   — the auth gate: a FastAPI dependency that never rejects
  hash_password / verify_password — bcrypt, run off the event loop
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Optional, Union

import bcrypt
import jwt
from fastapi import Request
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes and newer releases reject longer input
_BCRYPT_MAX_BYTES = 72


class InvalidCredential(Exception):
    """The bearer credential is malformed, forged or expired."""


# ─────────────────────────── Token Service ───────────────────────────────

class TokenService:
    def __init__(
        self,
        secret: str,
        ttl_seconds: int = 3600,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._secret = secret
        self._ttl = ttl_seconds
        self._algorithm = algorithm
        self._clock = clock

    def issue(self, claims: dict[str, Any], ttl: Optional[int] = None) -> str:
        payload = dict(claims)
        payload["exp"] = int(self._clock()) + (ttl if ttl is not None else self._ttl)
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def verify(self, credential: str) -> dict[str, Any]:
        try:
            claims = jwt.decode(
                credential,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["exp"], "verify_exp": False},
            )
        except jwt.PyJWTError as exc:
            raise InvalidCredential(str(exc)) from exc

        # Expiry is checked against our own clock so tests can move time
        if int(claims["exp"]) <= int(self._clock()):
            raise InvalidCredential("Signature has expired")
        if not isinstance(claims.get("userId"), str) or not claims["userId"]:
            raise InvalidCredential("Token carries no userId claim")
        return claims


# ─────────────────────────── Identity ────────────────────────────────────

@dataclass(frozen=True)
class Anonymous:
    authenticated: ClassVar[bool] = False


@dataclass(frozen=True)
class Authenticated:
    user_id: str
    authenticated: ClassVar[bool] = True


Identity = Union[Anonymous, Authenticated]

ANONYMOUS = Anonymous()


def identify(authorization: Optional[str], tokens: TokenService) -> Identity:
    """Map an Authorization header value to an identity. Never raises."""
    if not authorization:
        return ANONYMOUS

    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        logger.debug("Ignoring malformed Authorization header")
        return ANONYMOUS

    try:
        claims = tokens.verify(credential.strip())
    except InvalidCredential as exc:
        logger.debug("Rejected bearer credential: %s", exc)
        return ANONYMOUS

    return Authenticated(user_id=claims["userId"])


async def get_identity(request: Request) -> Identity:
    """Auth gate dependency: attaches identity-or-anonymous, never rejects."""
    return identify(request.headers.get("Authorization"), request.app.state.tokens)


# ─────────────────────────── Passwords ───────────────────────────────────

def _secret_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


async def hash_password(password: str, rounds: int = 12) -> str:
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = await run_in_threadpool(bcrypt.hashpw, _secret_bytes(password), salt)
    return hashed.decode("utf-8")


async def verify_password(password: str, hashed: str) -> bool:
    try:
        return await run_in_threadpool(
            bcrypt.checkpw, _secret_bytes(password), hashed.encode("utf-8")
        )
    except ValueError:
        # stored value is not a bcrypt hash
        logger.warning("Stored password verifier is not a valid bcrypt hash")
        return False

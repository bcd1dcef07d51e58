from __future__ import annotations

from datetime import datetime
from typing import Optional

import jwt
from pydantic import BaseModel, Field, ValidationError
from pytz import timezone

from src.utils.log import log

ACCESS_TOKEN_TTL = 60 * 15  # 15 minutes


class Token(BaseModel):
    sub: str
    email: Optional[str] = None
    role: str = ""
    iat: int = Field(
        default_factory=lambda: int(datetime.now(timezone("UTC")).timestamp())
    )
    exp: int


class TokenHandler:
    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def create_access_token(
        self, *, sub: str, role: str, email: Optional[str] = None, ttl: int = ACCESS_TOKEN_TTL
    ) -> str:
        log.debug("Creating access token for viewer: %s", sub)
        now = int(datetime.now(timezone("UTC")).timestamp())
        payload = {
            "sub": str(sub),
            "email": email,
            "role": role,
            "iat": now,
            "exp": now + ttl,
        }
        token = jwt.encode(payload, self.secret, algorithm=self.algorithm)
        log.info("Access token created for viewer: %s", sub)
        return token

    def validate_token(self, token: str) -> Optional[Token]:
        log.debug("Validating token")
        try:
            decoded = jwt.decode(token, self.secret, algorithms=[self.algorithm])
            log.info("Token successfully validated")
            return Token(**decoded)
        except jwt.ExpiredSignatureError:
            log.warning("Token has expired")
            return None
        except jwt.InvalidTokenError:
            log.error("Invalid token provided")
            return None
        except ValidationError:
            log.error("Token is missing required claims")
            return None


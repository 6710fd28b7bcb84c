"""
JWT Service for identity tokens issued by the auth collaborator
"""
import jwt
import time
from typing import Dict, Any

from app.core.config import Settings, settings as default_settings
from atams.exceptions import UnauthorizedException

ISSUER = "attendance-integrity"


class JwtService:
    def __init__(self, config: Settings = default_settings) -> None:
        self.secret = config.IDENTITY_JWT_SECRET
        self.algorithm = config.IDENTITY_JWT_ALG

    def issue_token(self, employee_id: int, role_level: int = 1, expires_in: int = 3600) -> str:
        """
        Issue an identity token (for tooling and tests; production tokens
        come from the auth service)
        """
        now = int(time.time())
        payload = {
            "iss": ISSUER,
            "sub": str(employee_id),
            "role_level": role_level,
            "iat": now,
            "exp": now + expires_in,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Verify and decode an identity token

        Returns:
            dict: {user_id: int, role_level: int}

        Raises:
            UnauthorizedException: If token is invalid or expired
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthorizedException("Token expired")
        except jwt.InvalidTokenError as e:
            raise UnauthorizedException(f"Invalid token: {str(e)}")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise UnauthorizedException("Invalid token subject")

        return {
            "user_id": user_id,
            "role_level": int(payload.get("role_level", 1)),
        }

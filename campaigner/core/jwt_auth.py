# campaigner/core/jwt_auth.py
"""
JWT Authentication for multi-tenant API access.
Validates JWT tokens issued by the main business application.
"""
import jwt
from typing import Optional, Dict, Any
from fastapi import HTTPException

from campaigner.core.config import JWT_SECRET_KEY, JWT_ALGORITHM


class JWTAuth:
    """JWT Authentication handler"""

    @staticmethod
    def decode_token(token: str) -> Dict[str, Any]:
        """
        Decode and validate JWT token.

        Args:
            token: JWT token string

        Returns:
            Decoded token payload

        Raises:
            HTTPException: If token is invalid or expired
        """
        try:
            return jwt.decode(
                token,
                JWT_SECRET_KEY,
                algorithms=[JWT_ALGORITHM]
            )
        except jwt.ExpiredSignatureError:
            raise HTTPException(
                status_code=401,
                detail="Token has expired"
            )
        except jwt.InvalidTokenError:
            raise HTTPException(
                status_code=401,
                detail="Invalid token"
            )

    @staticmethod
    def get_tenant_id(payload: Dict[str, Any]) -> Optional[str]:
        """
        Extract tenant_id from JWT payload.

        The business app calls tenants "companies", so companyId is accepted too.
        """
        tenant_id = (
            payload.get('tenant_id') or
            payload.get('tenantId') or
            payload.get('company_id') or
            payload.get('companyId')
        )

        if isinstance(tenant_id, dict):
            tenant_id = tenant_id.get('id') or tenant_id.get('tenant_id')

        return str(tenant_id) if tenant_id else None

    @staticmethod
    def get_user_id(payload: Dict[str, Any]) -> Optional[str]:
        """Extract user_id from JWT payload"""
        user_id = (
            payload.get('user_id') or
            payload.get('sub') or
            payload.get('id')
        )
        return str(user_id) if user_id else None

    @staticmethod
    def get_role(payload: Dict[str, Any]) -> Optional[str]:
        """Extract the user's role (OWNER, ADMIN, CLEANER, ...) from JWT payload"""
        role = payload.get('role')
        return str(role).upper() if role else None

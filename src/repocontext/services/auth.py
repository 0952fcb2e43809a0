"""
Authentication Service - JWT and MCP token validation.

Two kinds of bearer token are accepted:

    JWT        HS256-signed, starts with ``eyJ``; payload carries ``id``
               (user) and ``workspaceId``.
    MCP token  Opaque ``rc_<hex>`` string handed out once by
               ``generate_mcp_token``; only its sha256 hash is stored.

Usage:
    from repocontext.services.auth import AuthService

    auth = AuthService(store)
    raw = auth.generate_mcp_token(workspace_id, "laptop")
    ctx = auth.validate_token(raw)
    auth.has_permission(ctx, "search")

Author: RepoContext Team
"""

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Optional

import jwt

from ..config import AuthConfig, get_config
from ..constants import (
    DEFAULT_TOKEN_PERMISSIONS,
    JWT_ALGORITHM,
    JWT_PREFIX,
    MCP_TOKEN_BYTES,
    MCP_TOKEN_PREFIX,
    WILDCARD_PERMISSIONS,
    ErrorMessage,
)
from ..logging import get_logger
from ..models.knowledge import MCPToken
from .knowledge_store import KnowledgeStore


logger = get_logger(__name__)


class AuthenticationError(Exception):
    """Raised when a token is missing, invalid, expired or for another workspace."""


@dataclass
class AuthContext:
    """Identity established by a validated token."""

    workspace_id: str
    user_id: Optional[str] = None
    permissions: list[str] = field(default_factory=list)
    token_type: str = "mcp"
    token_id: Optional[str] = None


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AuthService:
    """Validate, issue and revoke tokens against the knowledge store."""

    def __init__(self, store: Optional[KnowledgeStore] = None, config: Optional[AuthConfig] = None):
        self.store = store or KnowledgeStore()
        self.config = config or get_config().auth

    def validate_token(self, token: str, workspace_id: Optional[str] = None) -> AuthContext:
        """
        Validate a JWT or MCP token.

        Args:
            token: Raw bearer token
            workspace_id: Workspace the caller wants to access, if any

        Returns:
            AuthContext for the token

        Raises:
            AuthenticationError: If the token is not accepted
        """
        if not token:
            raise AuthenticationError(ErrorMessage.INVALID_TOKEN)

        if token.startswith(JWT_PREFIX):
            context = self._validate_jwt(token)
        else:
            context = self._validate_mcp_token(token)

        if workspace_id and context.workspace_id != workspace_id:
            raise AuthenticationError(ErrorMessage.WORKSPACE_MISMATCH.format(workspace_id=workspace_id))

        logger.debug(
            "Token validated",
            extra={"token_type": context.token_type, "workspace_id": context.workspace_id},
        )
        return context

    def _validate_jwt(self, token: str) -> AuthContext:
        if not self.config.jwt_secret:
            raise AuthenticationError(ErrorMessage.JWT_SECRET_MISSING)

        try:
            payload: dict[str, Any] = jwt.decode(token, self.config.jwt_secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError as error:
            logger.debug("JWT validation failed", extra={"error": str(error)})
            raise AuthenticationError(ErrorMessage.INVALID_TOKEN) from error

        if not payload.get("id") or not payload.get("workspaceId"):
            raise AuthenticationError(ErrorMessage.INVALID_TOKEN)

        return AuthContext(
            workspace_id=str(payload["workspaceId"]),
            user_id=str(payload["id"]),
            permissions=list(payload.get("permissions") or []),
            token_type="jwt",
        )

    def _validate_mcp_token(self, token: str) -> AuthContext:
        record = self.store.find_token_by_hash(hash_token(token))
        if record is None or not record.is_active:
            raise AuthenticationError(ErrorMessage.INVALID_TOKEN)
        if record.expires_at and record.expires_at <= datetime.now():
            raise AuthenticationError(ErrorMessage.INVALID_TOKEN)

        self.store.touch_token(record.id)
        return AuthContext(
            workspace_id=record.workspace_id,
            permissions=list(record.permissions),
            token_type="mcp",
            token_id=record.id,
        )

    @staticmethod
    def has_permission(context: AuthContext, permission: str) -> bool:
        """True if the token grants ``permission`` directly or through a wildcard."""
        granted = set(context.permissions)
        return permission in granted or any(p in granted for p in WILDCARD_PERMISSIONS)

    def generate_mcp_token(
        self,
        workspace_id: str,
        name: str,
        permissions: Optional[list[str]] = None,
        expires_in_days: Optional[int] = None,
    ) -> str:
        """
        Issue a new MCP token.

        The raw token is returned exactly once; only its hash is persisted.
        """
        raw = MCP_TOKEN_PREFIX + secrets.token_hex(MCP_TOKEN_BYTES)
        expires_at = datetime.now() + timedelta(days=expires_in_days) if expires_in_days else None

        record = MCPToken(
            workspace_id=workspace_id,
            name=name,
            token_hash=hash_token(raw),
            permissions=list(permissions) if permissions is not None else list(DEFAULT_TOKEN_PERMISSIONS),
            expires_at=expires_at,
        )
        self.store.get_or_create_workspace(workspace_id, workspace_id)
        self.store.save_token(record)

        logger.info(
            "MCP token generated",
            extra={"token_id": record.id, "workspace_id": workspace_id, "token_name": name},
        )
        return raw

    def revoke_token(self, token_id: str) -> bool:
        revoked = self.store.revoke_token(token_id)
        if revoked:
            logger.info("MCP token revoked", extra={"token_id": token_id})
        return revoked

    def list_tokens(self, workspace_id: str) -> list[MCPToken]:
        """Active tokens of a workspace, newest first."""
        return [token for token in self.store.list_tokens(workspace_id) if token.is_active]

    def cleanup_expired(self) -> int:
        removed = self.store.delete_expired_tokens()
        logger.info("Cleaned up expired MCP tokens", extra={"count": removed})
        return removed

"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from sessionguard.repositories.base import BaseRepository
from sessionguard.repositories.refresh_token import RefreshTokenRepository
from sessionguard.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]

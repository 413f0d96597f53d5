"""Service layer public API.

This package exposes the essential building blocks for the service layer so
that callers can import from :mod:`sessionguard.services` without knowing the
internal structure.

Re-exports
----------
- Base primitives (from ``sessionguard.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Token lifecycle (from ``sessionguard.services.auth``)
    * :class:`TokenLifecycleManager`
    * :class:`DeviceInfoResolver`
    * DTOs: :class:`DeviceInfo`, :class:`TokenBundle`, :class:`DeviceSession`,
      :class:`AuthTokenConfig`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from .auth.device import DeviceInfoResolver
from .auth.dto import AuthTokenConfig, DeviceInfo, DeviceSession, TokenBundle
from .auth.service import TokenLifecycleManager

__all__ = [
    "BaseService",
    "ServiceContext",
    "TokenLifecycleManager",
    "DeviceInfoResolver",
    "DeviceInfo",
    "TokenBundle",
    "DeviceSession",
    "AuthTokenConfig",
]

"""User repository for identity lookup, roles and credential checks."""

from __future__ import annotations

from collections.abc import Iterable
from typing import cast

from sqlalchemy import or_, select

from sessionguard.models.user import Role, User, user_roles
from sessionguard.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    This repository focuses on safe lookup and password verification.
    It NEVER handles JWT or session creation, only DB-level user management.
    """

    model = User

    def _filterable_fields(self):
        """Whitelist fields safe for equality filters."""
        return {
            "email": User.email,
            "username": User.username,
        }

    # ---------------------------- Lookup helpers ----------------------------

    def get_by_login(self, login_identifier: str) -> User | None:
        """Fetch a user by email (case-insensitive) or by exact username.

        :param login_identifier: Email address or username.
        :type login_identifier: str
        :returns: User instance or ``None`` when not found.
        :rtype: User | None
        """
        ident = login_identifier.strip()
        stmt = select(User).where(or_(User.email == ident.lower(), User.username == ident))
        result = self.session.execute(stmt).scalars().first()
        return cast(User | None, result)

    def exists_by_email(self, email: str) -> bool:
        """Return ``True`` when a user with the provided email exists."""
        stmt = select(User.id).where(User.email == email.lower().strip())
        return bool(self.session.execute(stmt).first())

    def role_names_for(self, user_id: str) -> frozenset[str]:
        """Return the user's current role names straight from the association table."""
        stmt = (
            select(Role.name)
            .join(user_roles, user_roles.c.role_id == Role.id)
            .where(user_roles.c.user_id == user_id)
        )
        return frozenset(self.session.execute(stmt).scalars().all())

    # ---------------------------- Credentials ----------------------------

    def authenticate(self, login_identifier: str, password: str) -> User | None:
        """Authenticate a user by email or username and password.

        :param login_identifier: Email address or username.
        :type login_identifier: str
        :param password: Raw password to verify.
        :type password: str
        :returns: Authenticated user or ``None`` when credentials fail.
        :rtype: User | None
        """
        user = self.get_by_login(login_identifier)
        if not user or not user.verify_password(password):
            return None
        return user

    # ---------------------------- Roles ----------------------------

    def get_or_create_role(self, name: str) -> Role:
        """Return the role called ``name``, creating it when missing."""
        role = self.session.execute(select(Role).where(Role.name == name)).scalars().first()
        if role is None:
            role = Role(name=name)
            self.session.add(role)
            self.flush()
        return cast(Role, role)

    def set_roles(self, user: User, names: Iterable[str]) -> None:
        """Replace the user's role assignment and flush."""
        user.roles = [self.get_or_create_role(n) for n in sorted(set(names))]
        self.flush()

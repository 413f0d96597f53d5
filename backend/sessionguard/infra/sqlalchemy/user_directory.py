# sessionguard/infra/sqlalchemy/user_directory.py
from __future__ import annotations

from sessionguard.models.user import User
from sessionguard.services._shared.ports import UserDirectory, UserIdentity
from sessionguard.uow import SQLAlchemyReadOnlyUnitOfWork


def to_identity(user: User) -> UserIdentity:
    return UserIdentity(id=user.id, email=user.email, username=user.username)


class SQLAlchemyUserDirectory(UserDirectory):
    """
    Identity collaborator backed by the ``users`` / ``roles`` tables.

    Roles are read with a fresh query on every call, never cached.
    """

    def find_user_by_id(self, user_id: str) -> UserIdentity | None:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            user = uow.users.get(user_id)
            return to_identity(user) if user is not None else None

    def get_roles_for_user(self, user_id: str) -> frozenset[str]:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            return uow.users.role_names_for(user_id)

    def authenticate(self, login_identifier: str, password: str) -> UserIdentity | None:
        with SQLAlchemyReadOnlyUnitOfWork() as uow:
            user = uow.users.authenticate(login_identifier, password)
            return to_identity(user) if user is not None else None

# app/core/roles.py
from typing import Iterable, Optional, Set
from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.database import get_db
from app.models.user import User, ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_USER


class RoleDirectory:
    """
    Admin / supervisor membership for one request.

    Built from users.role merged with the ADMIN_IDS / SUPERVISOR_IDS
    environment overrides. An id listed as admin is never treated as a
    supervisor.
    """

    def __init__(self, admin_ids: Iterable[int] = (), supervisor_ids: Iterable[int] = ()):
        self._admins: Set[int] = set(admin_ids)
        self._supervisors: Set[int] = set(supervisor_ids) - self._admins

    @classmethod
    async def load(
        cls,
        db: AsyncSession,
        admin_overrides: Optional[Set[int]] = None,
        supervisor_overrides: Optional[Set[int]] = None,
    ) -> "RoleDirectory":
        admins = set(settings.admin_id_overrides if admin_overrides is None else admin_overrides)
        supervisors = set(
            settings.supervisor_id_overrides if supervisor_overrides is None else supervisor_overrides
        )

        result = await db.execute(
            select(User.id, User.role).where(User.role.in_([ROLE_ADMIN, ROLE_SUPERVISOR]))
        )
        for user_id, role in result.all():
            if role == ROLE_ADMIN:
                admins.add(user_id)
            elif role == ROLE_SUPERVISOR:
                supervisors.add(user_id)
        return cls(admins, supervisors)

    def is_admin(self, user_id: Optional[int]) -> bool:
        return user_id in self._admins

    def is_supervisor(self, user_id: Optional[int]) -> bool:
        return user_id in self._supervisors

    def role_of(self, user_id: Optional[int]) -> str:
        if self.is_admin(user_id):
            return ROLE_ADMIN
        if self.is_supervisor(user_id):
            return ROLE_SUPERVISOR
        return ROLE_USER

    @property
    def admin_ids(self) -> Set[int]:
        return set(self._admins)

    @property
    def supervisor_ids(self) -> Set[int]:
        return set(self._supervisors)

    @property
    def all_ids(self) -> Set[int]:
        return self._admins | self._supervisors


async def get_role_directory(db: AsyncSession = Depends(get_db)) -> RoleDirectory:
    return await RoleDirectory.load(db)

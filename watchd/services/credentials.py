"""Credential store implementations.

SqlCredentialStore persists the session keys in a local SQLite file through
SQLAlchemy. MemoryCredentialStore keeps them for the lifetime of the process.
"""

from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from watchd.clients.base import ALL_CREDENTIAL_KEYS, ICredentialStore
from watchd.models.tables import CredentialEntry


class SqlCredentialStore(ICredentialStore):
    """SQLAlchemy implementation of ICredentialStore."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def save(self, key: str, value: str) -> None:
        async with self._sessionmaker() as session:
            await session.merge(CredentialEntry(key=key, value=value))
            await session.commit()

    async def load(self, key: str) -> Optional[str]:
        async with self._sessionmaker() as session:
            result = await session.execute(
                select(CredentialEntry.value).where(CredentialEntry.key == key)
            )
            return result.scalar_one_or_none()

    async def delete(self, key: str) -> None:
        async with self._sessionmaker() as session:
            await session.execute(delete(CredentialEntry).where(CredentialEntry.key == key))
            await session.commit()

    async def clear_all(self) -> None:
        async with self._sessionmaker() as session:
            await session.execute(
                delete(CredentialEntry).where(CredentialEntry.key.in_(ALL_CREDENTIAL_KEYS))
            )
            await session.commit()


class MemoryCredentialStore(ICredentialStore):
    """Dict-backed store for ephemeral sessions and tests."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.values: dict[str, str] = dict(initial or {})
        self.clear_count = 0

    async def save(self, key: str, value: str) -> None:
        self.values[key] = value

    async def load(self, key: str) -> Optional[str]:
        return self.values.get(key)

    async def delete(self, key: str) -> None:
        self.values.pop(key, None)

    async def clear_all(self) -> None:
        self.clear_count += 1
        for key in ALL_CREDENTIAL_KEYS:
            self.values.pop(key, None)

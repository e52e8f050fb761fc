"""SqlCredentialStore on a throwaway SQLite file."""

import pytest

from watchd.clients.base import IS_GUEST_KEY, TOKEN_KEY, USER_ID_KEY
from watchd.database import create_engine, create_sessionmaker, init_db
from watchd.services.credentials import SqlCredentialStore


@pytest.fixture
async def sql_store(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'credentials.db'}")
    await init_db(engine)
    yield SqlCredentialStore(create_sessionmaker(engine))
    await engine.dispose()


async def test_save_load_overwrite(sql_store):
    assert await sql_store.load(TOKEN_KEY) is None

    await sql_store.save(TOKEN_KEY, "first")
    await sql_store.save(TOKEN_KEY, "second")

    assert await sql_store.load(TOKEN_KEY) == "second"


async def test_delete_single_key(sql_store):
    await sql_store.save(TOKEN_KEY, "tok")
    await sql_store.save(USER_ID_KEY, "7")

    await sql_store.delete(TOKEN_KEY)
    await sql_store.delete("never-saved")

    assert await sql_store.load(TOKEN_KEY) is None
    assert await sql_store.load(USER_ID_KEY) == "7"


async def test_clear_all_leaves_foreign_keys(sql_store):
    await sql_store.save(TOKEN_KEY, "tok")
    await sql_store.save(IS_GUEST_KEY, "true")
    await sql_store.save("onboarding_seen", "1")

    await sql_store.clear_all()

    assert await sql_store.load(TOKEN_KEY) is None
    assert await sql_store.load(IS_GUEST_KEY) is None
    assert await sql_store.load("onboarding_seen") == "1"

"""Tests for the in-memory and SQL credential stores."""

import pytest
from spotify_match.db import Database
from spotify_match.models.db import UserCredential
from spotify_match.models.spotify import UserSlot
from spotify_match.services.token_store import (
    CredentialField,
    InMemoryTokenStore,
    SqlTokenStore,
    TokenStore,
)


@pytest.fixture
def database(tmp_path):
    database = Database()
    database.init(f"sqlite:///{tmp_path / 'credentials.db'}")
    yield database
    database.dispose()


@pytest.fixture(params=["memory", "sql"])
def token_store(request, tmp_path) -> TokenStore:
    if request.param == "memory":
        return InMemoryTokenStore()
    return SqlTokenStore(request.getfixturevalue("database"))


class TestTokenStore:
    def test_get_missing_is_none(self, token_store: TokenStore) -> None:
        assert token_store.get("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN) is None
        assert token_store.credential("s", UserSlot.ONE) is None
        assert token_store.profile("s", UserSlot.ONE) is None

    def test_set_and_get(self, token_store: TokenStore) -> None:
        token_store.set("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN, "access")
        token_store.set("s", UserSlot.ONE, CredentialField.REFRESH_TOKEN, "refresh")
        token_store.set("s", UserSlot.ONE, CredentialField.EXPIRES_AT, 1_700_000_000_000)

        credential = token_store.credential("s", UserSlot.ONE)

        assert credential.access_token == "access"
        assert credential.refresh_token == "refresh"
        assert credential.expires_at == 1_700_000_000_000

    def test_profile_round_trip(self, token_store: TokenStore, profile1) -> None:
        token_store.set("s", UserSlot.TWO, CredentialField.PROFILE, profile1.to_dict())

        assert token_store.profile("s", UserSlot.TWO) == profile1

    def test_slots_and_sessions_isolated(self, token_store: TokenStore) -> None:
        token_store.set("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN, "one")
        token_store.set("s", UserSlot.TWO, CredentialField.ACCESS_TOKEN, "two")
        token_store.set("other", UserSlot.ONE, CredentialField.ACCESS_TOKEN, "other")

        assert token_store.get("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN) == "one"
        assert token_store.get("s", UserSlot.TWO, CredentialField.ACCESS_TOKEN) == "two"
        assert token_store.get("other", UserSlot.ONE, CredentialField.ACCESS_TOKEN) == "other"

    def test_delete_single_field(self, token_store: TokenStore) -> None:
        token_store.set("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN, "access")
        token_store.set("s", UserSlot.ONE, CredentialField.REFRESH_TOKEN, "refresh")

        token_store.delete("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN)

        assert token_store.get("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN) is None
        assert token_store.get("s", UserSlot.ONE, CredentialField.REFRESH_TOKEN) == "refresh"

    def test_purge_clears_only_that_slot(self, token_store: TokenStore, profile1, profile2) -> None:
        for slot, profile in ((UserSlot.ONE, profile1), (UserSlot.TWO, profile2)):
            token_store.set("s", slot, CredentialField.ACCESS_TOKEN, f"access-{int(slot)}")
            token_store.set("s", slot, CredentialField.PROFILE, profile.to_dict())

        token_store.purge("s", UserSlot.ONE)

        assert token_store.credential("s", UserSlot.ONE) is None
        assert token_store.profile("s", UserSlot.ONE) is None
        assert token_store.profile("s", UserSlot.TWO) == profile2

    def test_purge_of_empty_slot(self, token_store: TokenStore) -> None:
        token_store.purge("nothing", UserSlot.TWO)

        assert token_store.credential("nothing", UserSlot.TWO) is None


class TestSqlTokenStore:
    def test_row_removed_when_all_fields_deleted(self, database: Database) -> None:
        store = SqlTokenStore(database)
        store.set("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN, "access")

        store.delete("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN)

        with database.session() as session:
            assert session.query(UserCredential).count() == 0

    def test_purge_deletes_row(self, database: Database) -> None:
        store = SqlTokenStore(database)
        store.set("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN, "access")
        store.set("s", UserSlot.TWO, CredentialField.ACCESS_TOKEN, "access")

        store.purge("s", UserSlot.ONE)

        with database.session() as session:
            rows = session.query(UserCredential).all()
            assert [row.user_slot for row in rows] == [2]

    def test_uninitialized_database(self, database: Database) -> None:
        assert database.initialized
        uninitialized = Database()
        assert not uninitialized.initialized
        store = SqlTokenStore(uninitialized)

        with pytest.raises(RuntimeError, match="not initialized"):
            store.get("s", UserSlot.ONE, CredentialField.ACCESS_TOKEN)


class TestTokenStoreInterface:
    def test_base_class_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            TokenStore()

    def test_subclass_must_implement_field_access(self) -> None:
        class ReadOnlyStore(TokenStore):
            def get(self, session_id, slot, field):
                return None

        with pytest.raises(TypeError):
            ReadOnlyStore()

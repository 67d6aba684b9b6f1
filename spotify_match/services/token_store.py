"""Session-scoped storage of per-user Spotify credentials"""
import logging
import threading
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from spotify_match.db import Database
from spotify_match.models.db import UserCredential
from spotify_match.models.spotify import Credential, UserProfile, UserSlot

logger = logging.getLogger(__name__)


class CredentialField(str, Enum):
    """Fields stored per (session, user slot)"""
    ACCESS_TOKEN = "access_token"
    REFRESH_TOKEN = "refresh_token"
    EXPIRES_AT = "expires_at"
    PROFILE = "profile"


class TokenStore(ABC):
    """
    Credential storage keyed by (session id, user slot).

    Records of different slots never share mutable state, so two slots may be
    read and written concurrently.
    """

    @abstractmethod
    def get(self, session_id: str, slot: UserSlot, field: CredentialField) -> Any:
        raise NotImplementedError

    @abstractmethod
    def set(self, session_id: str, slot: UserSlot, field: CredentialField, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, session_id: str, slot: UserSlot, field: CredentialField) -> None:
        raise NotImplementedError

    def purge(self, session_id: str, slot: UserSlot) -> None:
        """Delete the credential and the profile of a slot"""
        for field in CredentialField:
            self.delete(session_id, slot, field)
        logger.info(f"Cleared stored credentials for user {int(slot)} of session {session_id}.")

    def credential(self, session_id: str, slot: UserSlot) -> Optional[Credential]:
        """Read the slot's credential, None if nothing is stored"""
        access_token = self.get(session_id, slot, CredentialField.ACCESS_TOKEN)
        refresh_token = self.get(session_id, slot, CredentialField.REFRESH_TOKEN)
        expires_at = self.get(session_id, slot, CredentialField.EXPIRES_AT)
        if access_token is None and refresh_token is None:
            return None
        return Credential(access_token=access_token, refresh_token=refresh_token, expires_at=expires_at)

    def profile(self, session_id: str, slot: UserSlot) -> Optional[UserProfile]:
        data = self.get(session_id, slot, CredentialField.PROFILE)
        return UserProfile.from_dict(data) if data else None


class InMemoryTokenStore(TokenStore):
    """Process-local store, used for tests and single-process deployments"""

    def __init__(self):
        self._records: Dict[Tuple[str, int], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, session_id: str, slot: UserSlot, field: CredentialField) -> Any:
        with self._lock:
            return self._records.get((session_id, int(slot)), {}).get(field.value)

    def set(self, session_id: str, slot: UserSlot, field: CredentialField, value: Any) -> None:
        with self._lock:
            self._records.setdefault((session_id, int(slot)), {})[field.value] = value

    def delete(self, session_id: str, slot: UserSlot, field: CredentialField) -> None:
        with self._lock:
            record = self._records.get((session_id, int(slot)))
            if record is None:
                return
            record.pop(field.value, None)
            if not record:
                del self._records[(session_id, int(slot))]


class SqlTokenStore(TokenStore):
    """Credential store backed by the user_credentials table"""

    def __init__(self, database: Database):
        self.database = database

    def _find(self, session, session_id: str, slot: UserSlot) -> Optional[UserCredential]:
        return session.query(UserCredential).filter_by(
            session_id=session_id, user_slot=int(slot)
        ).first()

    def get(self, session_id: str, slot: UserSlot, field: CredentialField) -> Any:
        try:
            with self.database.session() as session:
                record = self._find(session, session_id, slot)
                return getattr(record, field.value) if record else None
        except SQLAlchemyError as e:
            logger.error(f"Database error reading {field.value} for user {int(slot)} of session {session_id}: {e}")
            raise

    def set(self, session_id: str, slot: UserSlot, field: CredentialField, value: Any) -> None:
        try:
            with self.database.session() as session:
                record = self._find(session, session_id, slot)
                if record is None:
                    record = UserCredential(session_id=session_id, user_slot=int(slot))
                    session.add(record)
                setattr(record, field.value, value)
        except SQLAlchemyError as e:
            logger.error(f"Database error storing {field.value} for user {int(slot)} of session {session_id}: {e}")
            raise

    def delete(self, session_id: str, slot: UserSlot, field: CredentialField) -> None:
        try:
            with self.database.session() as session:
                record = self._find(session, session_id, slot)
                if record is None:
                    return
                setattr(record, field.value, None)
                if all(getattr(record, f.value) is None for f in CredentialField):
                    session.delete(record)
        except SQLAlchemyError as e:
            logger.error(f"Database error deleting {field.value} for user {int(slot)} of session {session_id}: {e}")
            raise

    def purge(self, session_id: str, slot: UserSlot) -> None:
        """Delete the whole row in one transaction"""
        try:
            with self.database.session() as session:
                record = self._find(session, session_id, slot)
                if record is not None:
                    session.delete(record)
            logger.info(f"Cleared stored credentials for user {int(slot)} of session {session_id}.")
        except SQLAlchemyError as e:
            logger.error(f"Database error clearing user {int(slot)} of session {session_id}: {e}")
            raise

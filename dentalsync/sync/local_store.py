"""Encrypted key-value cache used when the remote backend is unreachable.

Values are serialized to JSON and encrypted with Fernet before they are
written to the ``local_snapshots`` table.
"""

import base64
import functools
import json
import logging
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from dentalsync.core import config
from dentalsync.database import SessionLocal
from dentalsync.models.local_snapshot import LocalSnapshot

logger = logging.getLogger(__name__)

KEY_DERIVATION_SALT = b'dentalsync-local-store'
KEY_DERIVATION_ITERATIONS = 480_000


@functools.lru_cache(maxsize=8)
def derive_fernet_key(secret: str) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KEY_DERIVATION_SALT,
        iterations=KEY_DERIVATION_ITERATIONS,
    )
    return base64.urlsafe_b64encode(kdf.derive(secret.encode('utf-8')))


class LocalStore:
    def __init__(self, session_factory: sessionmaker = SessionLocal, secret: str | None = None):
        self._session_factory = session_factory
        self._fernet = Fernet(derive_fernet_key(secret or config.LOCAL_STORE_SECRET))

    def save(self, key: str, value: Any) -> None:
        token = self._fernet.encrypt(json.dumps(value).encode('utf-8')).decode('ascii')

        db = self._session_factory()
        try:
            snapshot = db.get(LocalSnapshot, key)
            if snapshot is None:
                db.add(LocalSnapshot(key=key, value=token))
            else:
                snapshot.value = token
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def load(self, key: str, default: Any = None) -> Any:
        db = self._session_factory()
        try:
            snapshot = db.get(LocalSnapshot, key)
        except SQLAlchemyError:
            logger.exception('Could not read local snapshot %r.', key)
            return default
        finally:
            db.close()

        if snapshot is None:
            return default

        try:
            return json.loads(self._fernet.decrypt(snapshot.value.encode('ascii')))
        except InvalidToken:
            logger.warning('Local snapshot %r could not be decrypted; ignoring it.', key)
            return default

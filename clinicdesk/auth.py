"""API key authentication for center administrators and super-admins."""
import uuid
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clinicdesk.api.database_models import Base, APIKey, engine_options


class InvalidAPIKeyError(Exception):
    """Raised when API key is invalid or inactive."""
    pass


@dataclass(frozen=True)
class AdminIdentity:
    """Who a validated key belongs to."""
    user_id: str
    center_id: Optional[str]
    is_super_admin: bool = False

    def can_manage(self, center_id: str) -> bool:
        """Super-admins manage every center; others only their own."""
        return self.is_super_admin or self.center_id == center_id


class APIKeyManager:
    """
    Manages API key generation, validation, and lifecycle.

    Pattern: Secure key generation with bcrypt hashing + prefix indexing.
    Keys are shown in plain text ONCE during generation.
    """

    def __init__(self, database_url: str):
        """Initialize with database connection."""
        self.engine = create_engine(database_url, **engine_options(database_url))
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def generate_api_key(
        self,
        user_id: str,
        center_id: Optional[str] = None,
        is_super_admin: bool = False,
        description: Optional[str] = None
    ) -> str:
        """
        Generate new API key for an administrator.

        WARNING: Returns key in plain text ONCE.

        Args:
            user_id: Administrator identifier
            center_id: Center the key manages (None for super-admins)
            is_super_admin: Grant access to every center and center management
            description: Optional label

        Returns:
            API key in format: ak_<uuid>
        """
        if center_id is None and not is_super_admin:
            raise ValueError("A center administrator key needs a center_id")

        api_key = f"ak_{uuid.uuid4().hex}"

        with self.SessionLocal() as db:
            db.add(APIKey(
                key_prefix=APIKey.get_key_prefix(api_key),
                key_hash=APIKey.hash_key(api_key),
                user_id=user_id,
                center_id=center_id,
                is_super_admin=is_super_admin,
                created_at=datetime.now(UTC),
                last_used=datetime.now(UTC),
                is_active=True,
                description=description
            ))
            db.commit()

        return api_key

    def validate_api_key(self, api_key: str) -> AdminIdentity:
        """
        Validate API key and return who it belongs to.

        Updates last_used timestamp on successful validation.

        Raises:
            InvalidAPIKeyError: If key is invalid or inactive
        """
        key_prefix = APIKey.get_key_prefix(api_key)

        with self.SessionLocal() as db:
            db_key = db.query(APIKey).filter(
                APIKey.key_prefix == key_prefix,
                APIKey.is_active == True
            ).first()

            if not db_key or not APIKey.verify_key(api_key, db_key.key_hash):
                raise InvalidAPIKeyError("Invalid or inactive API key")

            db_key.last_used = datetime.now(UTC)
            db.commit()

            return AdminIdentity(
                user_id=db_key.user_id,
                center_id=db_key.center_id,
                is_super_admin=db_key.is_super_admin,
            )

    def deactivate_api_key(self, api_key: str):
        """
        Deactivate API key (soft delete).

        Raises:
            InvalidAPIKeyError: If key not found
        """
        key_prefix = APIKey.get_key_prefix(api_key)

        with self.SessionLocal() as db:
            db_key = db.query(APIKey).filter(APIKey.key_prefix == key_prefix).first()

            if not db_key or not APIKey.verify_key(api_key, db_key.key_hash):
                raise InvalidAPIKeyError("API key not found")

            db_key.is_active = False
            db.commit()

    def revoke_user(self, user_id: str, center_id: str) -> int:
        """
        Deactivate every key a user holds for a center.

        Returns:
            Number of keys deactivated
        """
        with self.SessionLocal() as db:
            revoked = db.query(APIKey).filter(
                APIKey.user_id == user_id,
                APIKey.center_id == center_id,
                APIKey.is_active == True
            ).update({APIKey.is_active: False})
            db.commit()
        return revoked

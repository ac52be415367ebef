"""
Storage for pending Square authorizations and organization connections.

``ConnectionStore`` owns both tables. The callback reads the pending table to
validate the OAuth state and then records the completed authorization with a
single call that updates the pending row and upserts the connection inside one
transaction.
"""

import datetime
import logging
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from square_connect.core.errors import PersistenceFailed, StorageUnavailable
from square_connect.core.models import (
    CompletedAuthorization,
    SquareConnection,
    SquarePendingToken,
)

logger = logging.getLogger("store")

DEFAULT_ORGANIZATION_ID = "default"

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def resolve_organization_id(requested: str | None, merchant_id: str) -> str:
    """
    Organization the connection belongs to.

    Falls back to ``org_<merchant_id>`` when the caller gave no organization or
    the ``default`` placeholder, so repeated flows for one merchant converge on
    the same connection row.
    """
    if not requested or requested == DEFAULT_ORGANIZATION_ID:
        return f"org_{merchant_id}"
    return requested


class ConnectionStore:
    """Reads and writes the ``square_pending_tokens`` and ``square_connections`` tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def pending_exists(self, state: str) -> bool:
        """Whether an outstanding authorization request has this state."""
        try:
            with self._session_factory() as db:
                found = db.execute(
                    select(SquarePendingToken.state).where(SquarePendingToken.state == state)
                ).first()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not look up state {state}") from e
        return found is not None

    def claim_pending(self, state: str) -> bool:
        """
        Atomically mark the pending authorization as consumed.

        Returns True for exactly one caller per state; a second callback with
        the same state, or an unknown state, gets False.
        """
        try:
            with self._session_factory() as db:
                result = db.execute(
                    update(SquarePendingToken)
                    .where(
                        SquarePendingToken.state == state,
                        SquarePendingToken.claimed_at.is_(None),
                    )
                    .values(claimed_at=datetime.datetime.now(datetime.UTC))
                )
                db.commit()
        except SQLAlchemyError as e:
            raise StorageUnavailable(f"Could not claim state {state}") from e
        return result.rowcount == 1

    def record_authorization(self, authorization: CompletedAuthorization) -> None:
        """
        Store a completed authorization in both tables, all or nothing.

        Raises:
            PersistenceFailed: If the transaction could not be committed. Nothing
                from this call is visible afterwards.
        """
        try:
            with self._session_factory() as db, db.begin():
                self._update_pending(db, authorization)
                self._upsert_connection(db, authorization)
        except SQLAlchemyError as e:
            raise PersistenceFailed(
                f"Could not store tokens for organization {authorization.organization_id}"
            ) from e

        logger.info(
            "Tokens stored successfully: organization_id=%s merchant_id=%s location_id=%s",
            authorization.organization_id,
            authorization.merchant_id,
            authorization.location_id,
        )

    def get_connection(self, organization_id: str) -> SquareConnection | None:
        """The organization's connection, or None if it never connected."""
        with self._session_factory() as db:
            return db.execute(
                select(SquareConnection).where(SquareConnection.organization_id == organization_id)
            ).scalar_one_or_none()

    def _update_pending(self, db: Session, authorization: CompletedAuthorization) -> None:
        result = db.execute(
            update(SquarePendingToken)
            .where(SquarePendingToken.state == authorization.state)
            .values(
                access_token=authorization.access_token,
                refresh_token=authorization.refresh_token,
                merchant_id=authorization.merchant_id,
                location_id=authorization.location_id,
                expires_at=authorization.expires_at,
            )
        )
        if result.rowcount == 0:
            logger.warning("No pending authorization left to update for state %s", authorization.state)

    def _upsert_connection(self, db: Session, authorization: CompletedAuthorization) -> None:
        values: dict[str, Any] = {
            "organization_id": authorization.organization_id,
            "merchant_id": authorization.merchant_id,
            "location_id": authorization.location_id,
            "access_token": authorization.access_token,
            "refresh_token": authorization.refresh_token,
            "expires_at": authorization.expires_at,
        }
        insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
        if insert is None:
            self._merge_connection(db, values)
            return

        statement = insert(SquareConnection).values(**values)
        statement = statement.on_conflict_do_update(
            index_elements=[SquareConnection.organization_id],
            set_={
                "merchant_id": statement.excluded.merchant_id,
                "location_id": statement.excluded.location_id,
                "access_token": statement.excluded.access_token,
                "refresh_token": statement.excluded.refresh_token,
                "expires_at": statement.excluded.expires_at,
                "updated_at": func.now(),
            },
        )
        db.execute(statement)

    def _merge_connection(self, db: Session, values: dict[str, Any]) -> None:
        # Dialects without ON CONFLICT: rely on the unique constraint to reject a racing insert.
        existing = db.execute(
            select(SquareConnection)
            .where(SquareConnection.organization_id == values["organization_id"])
            .with_for_update()
        ).scalar_one_or_none()
        if existing is None:
            db.add(SquareConnection(**values))
            db.flush()
            return
        for key, value in values.items():
            setattr(existing, key, value)
        existing.updated_at = datetime.datetime.now(datetime.UTC)
        db.flush()

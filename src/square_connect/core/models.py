"""
Database models for pending Square authorizations and live connections, plus the
Pydantic models for the Square payloads the callback consumes.
"""

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import DateTime, String, text
from sqlalchemy.orm import Mapped, mapped_column

from square_connect.core.database import Base
from square_connect.core.errors import CallbackErrorCode


class SquarePendingToken(Base):
    """
    An outstanding authorization request, keyed by its OAuth ``state``.

    The row is created when the merchant is sent to Square's consent screen and
    is filled in once by the callback with the exchanged tokens.

    Attributes:
        state (str): Random state token correlating the request and its callback.
        access_token (str): Square access token, set by the callback.
        refresh_token (str): Square refresh token, set by the callback.
        merchant_id (str): Square merchant id, set by the callback.
        location_id (str): Canonical location chosen for the merchant.
        expires_at (datetime): When the access token expires.
        created_at (datetime): When the authorization request was initiated.
        claimed_at (datetime): When a callback claimed this state, if claiming is enabled.
    """

    __tablename__ = "square_pending_tokens"

    state: Mapped[str] = mapped_column(String, primary_key=True)
    access_token: Mapped[str | None] = mapped_column(String, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(String, nullable=True)
    merchant_id: Mapped[str | None] = mapped_column(String, nullable=True)
    location_id: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")
    )
    claimed_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class SquareConnection(Base):
    """
    Live Square credentials of an organization. One row per organization.

    Attributes:
        organization_id (str): Tenant owning the connection.
        merchant_id (str): Square merchant the tokens belong to.
        location_id (str): Canonical Square location of the organization.
        access_token (str): Square access token.
        refresh_token (str): Square refresh token.
        expires_at (datetime): When the access token expires.
        created_at (datetime): When the organization first connected.
        updated_at (datetime): When the credentials were last replaced.
    """

    __tablename__ = "square_connections"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    organization_id: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    merchant_id: Mapped[str] = mapped_column(String, nullable=False)
    location_id: Mapped[str] = mapped_column(String, nullable=False)
    access_token: Mapped[str] = mapped_column(String, nullable=False)
    refresh_token: Mapped[str | None] = mapped_column(String, nullable=True)
    expires_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class TokenGrant(BaseModel):
    """Credentials returned by Square's ``ObtainToken`` endpoint."""

    access_token: str = Field(..., min_length=1)
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime.datetime] = None
    merchant_id: str = Field(..., min_length=1)

    model_config = ConfigDict(extra="ignore")


class SquareLocation(BaseModel):
    """A Square location as listed by ``ListLocations``."""

    id: str
    name: str = ""
    status: str = ""

    model_config = ConfigDict(extra="allow")


class CompletedAuthorization(BaseModel):
    """Everything the callback stores once the merchant is connected."""

    state: str
    organization_id: str
    merchant_id: str
    location_id: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime.datetime] = None


class CallbackOutcome(BaseModel):
    """Result of one callback, rendered as a redirect to the success page."""

    success: bool
    error: Optional[CallbackErrorCode] = None
    organization_id: Optional[str] = None
    merchant_id: Optional[str] = None
    location_id: Optional[str] = None

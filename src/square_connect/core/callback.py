"""
Square OAuth callback handler.

Turns the ``code`` and ``state`` Square sends back after the merchant's consent
into stored credentials for an organization. The stages run strictly in order:

1. validate the state against the pending authorizations,
2. exchange the code for tokens,
3. resolve the merchant's canonical location,
4. record the pending row and the organization connection in one transaction.

Any stage can stop the flow; the result is always a ``CallbackOutcome`` that the
router renders as a redirect to the success page.
"""

import logging
from typing import Protocol
from urllib.parse import urlencode

from square_connect.core.errors import (
    InvalidState,
    MissingParameter,
    PersistenceFailed,
    SquareOAuthError,
    UnhandledServerError,
)
from square_connect.core.models import CallbackOutcome, CompletedAuthorization, TokenGrant
from square_connect.core.settings import PersistencePolicy, SquareSettings
from square_connect.core.store import ConnectionStore, resolve_organization_id

logger = logging.getLogger("callback")


class TokenExchanger(Protocol):
    def exchange(self, code: str) -> TokenGrant: ...


class LocationResolver(Protocol):
    def resolve(self, access_token: str, merchant_id: str) -> str: ...


def build_redirect_url(origin: str, outcome: CallbackOutcome, success_path: str) -> str:
    """Success page URL for a callback outcome."""
    params = {"success": "true" if outcome.success else "false"}
    if not outcome.success:
        error = outcome.error or UnhandledServerError.error_code
        params["error"] = error.value
    return f"{origin}{success_path}?{urlencode(params)}"


class SquareCallbackHandler:
    """Runs the callback pipeline for one request at a time, holding no per-request state."""

    def __init__(
        self,
        settings: SquareSettings,
        store: ConnectionStore,
        token_exchanger: TokenExchanger,
        location_resolver: LocationResolver,
    ) -> None:
        self._settings = settings
        self._store = store
        self._token_exchanger = token_exchanger
        self._location_resolver = location_resolver

    def handle(
        self,
        code: str | None,
        state: str | None,
        organization_id: str | None = None,
    ) -> CallbackOutcome:
        """Complete the authorization. Never raises."""
        try:
            return self._complete(code, state, organization_id)
        except SquareOAuthError as e:
            logger.error("OAuth callback failed (%s): %s", e.error_code.value, e)
            return CallbackOutcome(success=False, error=e.error_code)
        except Exception as e:
            logger.exception("Server error during OAuth flow: %s", e)
            return CallbackOutcome(success=False, error=UnhandledServerError.error_code)

    def _complete(
        self, code: str | None, state: str | None, organization_id: str | None
    ) -> CallbackOutcome:
        if not code:
            raise MissingParameter("code")
        if not state:
            raise MissingParameter("state")

        self._validate_state(state)

        grant = self._token_exchanger.exchange(code)
        location_id = self._location_resolver.resolve(grant.access_token, grant.merchant_id)

        resolved_organization_id = resolve_organization_id(organization_id, grant.merchant_id)
        if resolved_organization_id != organization_id:
            logger.info("Generated organization ID from merchant ID: %s", resolved_organization_id)

        authorization = CompletedAuthorization(
            state=state,
            organization_id=resolved_organization_id,
            merchant_id=grant.merchant_id,
            location_id=location_id,
            access_token=grant.access_token,
            refresh_token=grant.refresh_token,
            expires_at=grant.expires_at,
        )
        self._persist(authorization)

        logger.info(
            "OAuth flow completed successfully: organization_id=%s merchant_id=%s",
            resolved_organization_id,
            grant.merchant_id,
        )
        return CallbackOutcome(
            success=True,
            organization_id=resolved_organization_id,
            merchant_id=grant.merchant_id,
            location_id=location_id,
        )

    def _validate_state(self, state: str) -> None:
        if self._settings.claim_state:
            valid = self._store.claim_pending(state)
        else:
            valid = self._store.pending_exists(state)
        if not valid:
            raise InvalidState(f"Invalid state parameter received: {state}")
        logger.debug("State validation successful: %s", state)

    def _persist(self, authorization: CompletedAuthorization) -> None:
        try:
            self._store.record_authorization(authorization)
        except PersistenceFailed as e:
            if self._settings.persistence_policy is PersistencePolicy.STRICT:
                raise
            # Best-effort persistence: the token exchange succeeded, so the user still sees success.
            logger.error("Database error storing tokens (continuing): %s", e)

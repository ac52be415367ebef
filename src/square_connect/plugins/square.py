"""Square plugin module.

This module talks to Square on behalf of the OAuth callback: it exchanges the
authorization code for tokens, lists the merchant's locations to pick a
canonical one, and exposes the callback endpoint itself.
"""

import logging
from typing import Any, Callable, Sequence

from fastapi import APIRouter, Request
from fastapi.responses import RedirectResponse
from pydantic import ValidationError
from square.client import Client
from square.http.auth.o_auth_2 import BearerAuthCredentials
from starlette.concurrency import run_in_threadpool

from square_connect.core.callback import SquareCallbackHandler, build_redirect_url
from square_connect.core.errors import (
    LocationFetchDegraded,
    NoLocationsFound,
    ServerConfigurationError,
    TokenExchangeFailed,
)
from square_connect.core.models import SquareLocation, TokenGrant
from square_connect.core.settings import SquareSettings

# Setup module-level logger
logger = logging.getLogger("square")

ACTIVE_STATUS = "ACTIVE"


class SquareTokenExchanger:
    """Exchanges an authorization code for merchant credentials."""

    def __init__(self, client: Client, settings: SquareSettings) -> None:
        self._client = client
        self._settings = settings

    def exchange(self, code: str) -> TokenGrant:
        """
        Call Square's ``ObtainToken`` once with ``grant_type=authorization_code``.

        Args:
            code (str): The authorization code from the callback.

        Returns:
            TokenGrant: Access and refresh tokens, expiry and merchant id.

        Raises:
            ServerConfigurationError: If the client identity is not configured.
            TokenExchangeFailed: If Square rejected the code, answered with an
                error payload, or could not be reached.
        """
        missing = self._settings.missing_oauth_settings()
        if missing:
            raise ServerConfigurationError(f"Missing required settings: {', '.join(missing)}")

        logger.info("Exchanging authorization code for tokens")
        try:
            result = self._client.o_auth.obtain_token(
                body={
                    "client_id": self._settings.square_app_id,
                    "client_secret": self._settings.square_app_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self._settings.redirect_uri,
                }
            )
        except Exception as e:
            logger.error("Error during token exchange: %s", e)
            raise TokenExchangeFailed("Square token endpoint could not be reached") from e

        if not result.is_success():
            logger.error("Error obtaining token from Square API: %s", result.errors)
            raise TokenExchangeFailed(f"Square rejected the authorization code: {result.errors}")

        body = result.body or {}
        if body.get("error"):
            logger.error("Token exchange error: %s", body.get("error"))
            raise TokenExchangeFailed(f"Square returned an error: {body.get('error')}")

        try:
            grant = TokenGrant.model_validate(body)
        except ValidationError as e:
            logger.error("Token exchange response is incomplete: %s", e)
            raise TokenExchangeFailed("Square token response is missing credentials") from e

        logger.debug("Token exchange successful for merchant %s", grant.merchant_id)
        return grant


def select_primary_location(locations: Sequence[SquareLocation]) -> SquareLocation:
    """
    Pick the first ACTIVE location, or the first location when none is active.

    Raises:
        NoLocationsFound: If there are no locations at all.
    """
    if not locations:
        raise NoLocationsFound("No locations found for merchant")
    for location in locations:
        if location.status == ACTIVE_STATUS:
            return location
    return locations[0]


def create_merchant_client(settings: SquareSettings, access_token: str) -> Client:
    """Square client acting with a merchant's access token."""
    return Client(
        bearer_auth_credentials=BearerAuthCredentials(access_token=access_token),
        environment=settings.environment,
        square_version=settings.square_version,
    )


class SquareLocationResolver:
    """Finds the canonical location of a freshly connected merchant."""

    def __init__(
        self,
        settings: SquareSettings,
        client_factory: Callable[[SquareSettings, str], Client] = create_merchant_client,
    ) -> None:
        self._settings = settings
        self._client_factory = client_factory

    def fetch_locations(self, access_token: str) -> list[SquareLocation]:
        """
        List the merchant's locations.

        Raises:
            LocationFetchDegraded: If Square could not be reached or the call failed.
        """
        logger.info("Fetching merchant locations")
        try:
            client = self._client_factory(self._settings, access_token)
            result = client.locations.list_locations()
        except Exception as e:
            raise LocationFetchDegraded(f"Error fetching merchant locations: {e}") from e

        if not result.is_success():
            raise LocationFetchDegraded(f"Error fetching merchant locations: {result.errors}")

        body: Any = result.body
        if not isinstance(body, dict) or not isinstance(body.get("locations"), list):
            raise LocationFetchDegraded(f"Unexpected locations payload: {body!r:.200}")
        try:
            locations = [SquareLocation.model_validate(item) for item in body["locations"]]
        except ValidationError as e:
            raise LocationFetchDegraded(f"Unexpected locations payload: {e}") from e
        logger.debug("Found %s locations", len(locations))
        return locations

    def resolve(self, access_token: str, merchant_id: str) -> str:
        """
        Location id to attach the merchant's credentials to.

        A failed fetch is not fatal: the merchant id is used as the location id
        so the connection is still stored.

        Raises:
            NoLocationsFound: If Square answered with an empty location list.
        """
        try:
            locations = self.fetch_locations(access_token)
        except LocationFetchDegraded as e:
            logger.error("%s", e)
            logger.warning("Using merchant_id as fallback for location_id: %s", merchant_id)
            return merchant_id

        try:
            primary = select_primary_location(locations)
        except NoLocationsFound:
            logger.warning("No locations found for merchant %s", merchant_id)
            raise

        logger.info("Selected primary location: %s (%s)", primary.id, primary.name)
        return primary.id


def create_square_router(handler: SquareCallbackHandler, settings: SquareSettings) -> APIRouter:
    """Create a router for the Square OAuth callback."""

    router = APIRouter()

    @router.get("/callback")
    async def oauth_callback(
        request: Request,
        code: str | None = None,
        state: str | None = None,
        organization_id: str | None = None,
    ) -> RedirectResponse:
        """
        Handle the OAuth callback from Square.

        Every outcome is a redirect to the success page with ``success`` and,
        on failure, ``error`` query parameters.

        Args:
            request (Request): The incoming request object.
            code (str | None): The authorization code from Square.
            state (str | None): The state parameter from the initial request.
            organization_id (str | None): Organization to connect, if known.
        """
        logger.info(
            "Received OAuth callback: state=%s has_code=%s has_org_id=%s",
            state,
            bool(code),
            bool(organization_id),
        )
        outcome = await run_in_threadpool(handler.handle, code, state, organization_id)

        origin = str(request.base_url).rstrip("/")
        return RedirectResponse(url=build_redirect_url(origin, outcome, settings.success_path))

    return router

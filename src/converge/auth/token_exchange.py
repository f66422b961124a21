"""API-key to access-token exchange over HTTP using httpx.

TokenExchangeSource is a CredentialSource: awaiting it posts the configured
API key to the token exchange route and returns a fresh Credential. It is
handed to CredentialRefreshCoordinator, which decides when to call it.

Connection-level failures can be retried by passing a BackoffRetrier; every
other failure is returned to the coordinator as-is.

Example usage:
    source = TokenExchangeSource(
        route="https://containers.example.com",
        api_key=os.environ["IAM_API_KEY"],
        csrf_token=os.environ.get("CSRF_TOKEN", ""),
        retrier=BackoffRetrier(RetryPolicy(max_attempts=40, base_interval=3, max_interval=3)),
    )
    coordinator = CredentialRefreshCoordinator(CredentialStore(), source)
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx

from converge.core.errors import Fault, FaultCategory, ReasonCode
from converge.core.logging import get_logger
from converge.execution.credentials import Credential
from converge.execution.retrier import BackoffRetrier

_logger = get_logger("auth.token_exchange")

TOKEN_EXCHANGE_PATH = "/v1/iam/apikey"


class TokenExchangeSource:
    """Exchanges an API key for an access token against a token service."""

    def __init__(
        self,
        route: str,
        api_key: str,
        *,
        csrf_token: str = "",
        timeout: float = 30.0,
        retrier: BackoffRetrier | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the source.

        Args:
            route: Base URL of the token service.
            api_key: API key to exchange.
            csrf_token: Value for the X-CSRF-TOKEN header.
            timeout: HTTP request timeout in seconds.
            retrier: Retries connection-level failures when given.
            client: Shared httpx client. Created lazily if omitted.
        """
        self._url = route.rstrip("/") + TOKEN_EXCHANGE_PATH
        self._api_key = api_key
        self._csrf_token = csrf_token
        self._timeout = timeout
        self._retrier = retrier
        self._client = client
        self._owns_client = client is None

    @property
    def url(self) -> str:
        return self._url

    def update_api_key(self, api_key: str) -> None:
        """Use a rotated API key for subsequent exchanges."""
        self._api_key = api_key

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __call__(self) -> Credential:
        """Perform the exchange.

        Raises:
            Fault: ``network`` for transport failures,
                ``token_exchange_failed`` when the service rejects the key,
                ``unclassified`` for unexpected responses.
        """
        if self._retrier is None:
            return await self._exchange_once()
        return await self._retrier.execute(self._exchange_once, operation="token_exchange")

    async def _exchange_once(self) -> Credential:
        client = await self._get_client()
        _logger.info("token_exchange.sending", url=self._url)
        try:
            response = await client.post(
                self._url,
                json={"apikey": self._api_key},
                headers={"X-CSRF-TOKEN": self._csrf_token},
            )
        except httpx.HTTPError as exc:
            _logger.error("token_exchange.request_failed", error=str(exc))
            category = (
                FaultCategory.NETWORK
                if isinstance(exc, httpx.NetworkError | httpx.TimeoutException)
                else FaultCategory.UNCLASSIFIED
            )
            raise Fault.from_exception(
                exc,
                message="IAM token exchange request failed",
                code=ReasonCode.NETWORK if category is FaultCategory.NETWORK else "",
                category=category,
            ) from exc

        if response.status_code == 200:
            _logger.debug("token_exchange.succeeded")
            return self._credential_from(response)

        body = self._json_body(response)
        description = body.get("description") if isinstance(body, dict) else None
        if description:
            _logger.error(
                "token_exchange.rejected",
                status_code=response.status_code,
                incident_id=body.get("incidentID"),
                error_code=body.get("code"),
            )
            raise Fault(
                f"IAM token exchange request failed: {description}",
                code=ReasonCode.FAILED_TOKEN_EXCHANGE,
                category=FaultCategory.TOKEN_EXCHANGE_FAILED,
                wrapped=[
                    f"{body.get('code', '')} {body.get('type', '')}, "
                    f"Description: {description}, API IncidentID:{body.get('incidentID', '')}"
                ],
                properties={
                    "StatusCode": str(response.status_code),
                    "IncidentID": str(body.get("incidentID", "")),
                },
            )

        _logger.error("token_exchange.unexpected_response", status_code=response.status_code)
        raise Fault(
            "Unexpected IAM token exchange response",
            code=ReasonCode.UNCLASSIFIED,
            properties={"StatusCode": str(response.status_code)},
        )

    @staticmethod
    def _json_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    @staticmethod
    def _credential_from(response: httpx.Response) -> Credential:
        body = TokenExchangeSource._json_body(response)
        token = body.get("token") if isinstance(body, dict) else None
        if not token:
            raise Fault(
                "IAM token exchange response did not contain a token",
                code=ReasonCode.FAILED_TOKEN_EXCHANGE,
                category=FaultCategory.TOKEN_EXCHANGE_FAILED,
                properties={"StatusCode": str(response.status_code)},
            )
        expiry = None
        expires_in = body.get("expires_in")
        if (
            isinstance(expires_in, int | float)
            and not isinstance(expires_in, bool)
            and expires_in > 0
        ):
            expiry = datetime.now(UTC) + timedelta(seconds=expires_in)
        return Credential(value=token, expiry=expiry)

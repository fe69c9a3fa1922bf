"""
iTop REST Client
================

Thin async client for the iTop REST/JSON webservice.

Every call is a form-encoded POST carrying ``version``, ``auth_user``,
``auth_pwd`` and a ``json_data`` document with the operation. Transport,
HTTP-status, decode and API-level (non-zero ``code``) failures all surface
as ``ITopException``. No retries; callers retry on their next cycle.
"""

import json
from typing import Any, Dict, Optional

import httpx

from itop_sla.config import Settings
from itop_sla.core import ConfigurationException, ITopException
from itop_sla.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


def oql_quote(value: str) -> str:
    """Quote a string literal for an OQL query."""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class ITopClient:
    """
    iTop webservice client.

    The underlying ``httpx.AsyncClient`` is created lazily and reused.
    """

    def __init__(
        self,
        base_url: Optional[str],
        username: Optional[str],
        password: Optional[str],
        version: str = "1.3",
        verify_tls: bool = False,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self._base_url = base_url
        self._username = username
        self._password = password
        self._version = version
        self._verify_tls = verify_tls
        self._timeout = timeout
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ITopClient":
        return cls(
            base_url=settings.itop_api_url,
            username=settings.itop_api_user,
            password=settings.itop_api_pwd,
            version=settings.itop_api_version,
            verify_tls=settings.itop_verify_tls,
            timeout=settings.itop_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        """True when URL, user and password are all set."""
        return bool(self._base_url and self._username and self._password)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout,
                verify=self._verify_tls,
                transport=self._transport,
            )
        return self._http_client

    async def post(self, operation: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run one REST operation.

        Returns:
            The decoded response document.

        Raises:
            ConfigurationException: If URL or credentials are missing.
            ITopException: On any request or API failure.
        """
        if not self.is_configured:
            raise ConfigurationException("iTop API URL, user and password must be configured")

        form = {
            "version": self._version,
            "auth_user": self._username,
            "auth_pwd": self._password,
            "json_data": json.dumps({"operation": operation, **params}),
        }

        try:
            client = await self._get_client()
            with log_latency(logger, "itop_request", itop_operation=operation, oql_class=params.get("class")):
                response = await client.post(self._base_url, data=form)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as e:
            raise ITopException(
                f"{operation} request failed: {e}",
                {"operation": operation, "oql_class": params.get("class")}
            ) from e
        except ValueError as e:
            raise ITopException(
                f"{operation} returned invalid JSON: {e}",
                {"operation": operation, "oql_class": params.get("class")}
            ) from e

        if not isinstance(payload, dict):
            raise ITopException(f"{operation} returned an unexpected document")

        code = payload.get("code", 0)
        if str(code) != "0":
            raise ITopException(
                payload.get("message") or f"{operation} failed with code {code}",
                {"operation": operation, "code": code}
            )

        return payload

    async def core_get(
        self,
        oql_class: str,
        key: str,
        output_fields: str = "*"
    ) -> Dict[str, Dict[str, Any]]:
        """
        ``core/get`` an OQL query.

        Returns:
            The ``objects`` mapping (empty when nothing matched).
        """
        payload = await self.post(
            "core/get",
            {"class": oql_class, "key": key, "output_fields": output_fields}
        )
        objects = payload.get("objects") or {}
        if not isinstance(objects, dict):
            raise ITopException(
                f"core/get {oql_class} returned malformed objects",
                {"operation": "core/get", "oql_class": oql_class}
            )
        return objects

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

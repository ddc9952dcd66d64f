"""Authenticated HTTP access to the storefront backend.

Every backend collaborator (cart, payments, orders) goes through
``send()`` so that transport failures and error statuses are translated
into the shared exception taxonomy in one place.
"""

import httpx
import structlog

from shared.exceptions import (
    AuthenticationError,
    BackendError,
    BackendUnavailableError,
    InsufficientStockError,
    InvalidCartError,
)

logger = structlog.get_logger(__name__)

_ERRORS_BY_CODE = {
    "INSUFFICIENT_STOCK": InsufficientStockError,
    "INVALID_CART": InvalidCartError,
}


def build_client(
    base_url: str,
    token: str | None = None,
    timeout: float = 30.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Create an async client that carries the buyer's bearer token."""
    headers = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.AsyncClient(
        base_url=base_url,
        headers=headers,
        timeout=timeout,
        transport=transport,
    )


async def send(client: httpx.AsyncClient, method: str, url: str, **kwargs) -> httpx.Response:
    """Issue a request and raise a ``BackendError`` subclass on failure."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as exc:
        logger.warning("Backend request failed", method=method, url=url, error=str(exc))
        raise BackendUnavailableError(f"{method} {url} failed: {exc}") from exc

    if response.is_success:
        return response

    error = error_for_response(response)
    logger.warning(
        "Backend request rejected",
        method=method,
        url=url,
        status_code=response.status_code,
        error_type=type(error).__name__,
    )
    raise error


def error_for_response(response: httpx.Response) -> BackendError:
    """Map an unsuccessful response to the matching exception."""
    body = _json_or_none(response)
    detail = body.get("message") if isinstance(body, dict) else None
    message = f"HTTP {response.status_code}: {detail or response.text[:200]}"

    code = body.get("code") if isinstance(body, dict) else None
    if code in _ERRORS_BY_CODE:
        return _ERRORS_BY_CODE[code](message)

    status = response.status_code
    if status in (401, 403):
        return AuthenticationError(message)
    if status == 409:
        return InsufficientStockError(message)
    if status in (400, 404, 422):
        return InvalidCartError(message)
    return BackendUnavailableError(message)


def _json_or_none(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return None


def parse_json(response: httpx.Response):
    """Decode a successful response body, treating garbage as an outage."""
    body = _json_or_none(response)
    if body is None:
        raise BackendUnavailableError(f"Unparseable response from {response.request.url}")
    return body

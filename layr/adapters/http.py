from typing import Any

import requests

from layr.exceptions import ConfigurationError, ProviderError


def request_json(
    session: requests.Session,
    method: str,
    url: str,
    *,
    service: str,
    error_class: type[ProviderError] = ProviderError,
    timeout: float | None = None,
    **kwargs: Any,
) -> Any:
    """
    Perform one HTTP call against a service API and decode its JSON body.

    Args:
        session: Shared HTTP session; auth headers are passed per call.
        method: HTTP verb.
        url: Absolute endpoint URL.
        service: Service name used in error messages.
        error_class: Error raised for transport failures and non-2xx answers.
        timeout: Per-request timeout in seconds.
        **kwargs: Passed through to `session.request` (json, data, params...).

    Returns:
        The decoded body, or {} for an empty one.

    Raises:
        ConfigurationError: On 401/403; the credentials are wrong, retrying cannot help.
        error_class: On connection problems, other non-2xx statuses, or undecodable bodies.
    """
    try:
        response = session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as e:
        raise error_class(f"{method} {url} failed: {e}", service=service) from e

    if response.status_code in (401, 403):
        raise ConfigurationError(
            f"{service} rejected the configured credentials (HTTP {response.status_code})",
            context={"url": url, "status": response.status_code},
        )
    if not response.ok:
        raise error_class(
            f"{method} {url} returned HTTP {response.status_code}: {response.text[:200]}",
            service=service,
            context={"status": response.status_code},
        )

    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError as e:
        raise error_class(f"{method} {url} returned a non-JSON body", service=service) from e

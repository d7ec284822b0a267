from typing import Dict, Optional, Union

import httpx

from ..core.config import config


def get_async_http_client(
    timeout: Optional[float] = None,
    *,
    verify: Union[bool, str] = True,
    headers: Optional[Dict[str, str]] = None,
    auth: Optional[httpx.Auth] = None,
) -> httpx.AsyncClient:
    """
    Shared AsyncClient factory for outbound calls (billing API, Prometheus).

    `timeout` bounds each read; connects always use DEFAULT_TIMEOUT_CONNECT.
    Every request carries the connector's User-Agent. A failed request is
    not retried here: the next collection cycle is the retry.
    """
    read_timeout = config.DEFAULT_TIMEOUT_READ if timeout is None else timeout
    client_headers = {"User-Agent": config.USER_AGENT, **(headers or {})}

    return httpx.AsyncClient(
        timeout=httpx.Timeout(read_timeout, connect=config.DEFAULT_TIMEOUT_CONNECT),
        headers=client_headers,
        verify=verify,
        auth=auth,
        follow_redirects=True,
    )

from __future__ import annotations

"""Lightweight HTTP client util (stdlib urllib).

Focus: GET JSON with a bounded timeout and an optional small retry count.
JSON numbers are decoded straight into Decimal so provider rates never pass
through a binary float.
"""
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

USER_AGENT = "fxrates/0.1"


class HttpError(Exception):
    pass


def build_url(base_url: str, path: str, params: Optional[Mapping[str, str]] = None) -> str:
    url = base_url.rstrip("/") + "/" + path.lstrip("/")
    if params:
        url += "?" + urllib.parse.urlencode(params)
    return url


def get_json(
    url: str, *, timeout: float = 10.0, retries: int = 0, backoff: float = 0.5
) -> Dict[str, Any]:
    last_err: Optional[Exception] = None
    request = urllib.request.Request(
        url, headers={"Accept": "application/json", "User-Agent": USER_AGENT}
    )
    for attempt in range(retries + 1):
        try:
            with urllib.request.urlopen(request, timeout=timeout) as resp:  # nosec B310
                if resp.status >= 400:
                    raise HttpError(f"HTTP {resp.status} for {url}")
                data = resp.read()
                return json.loads(
                    data.decode("utf-8"), parse_float=Decimal, parse_int=Decimal
                )
        except (
            urllib.error.URLError,
            TimeoutError,
            HttpError,
            ValueError,
        ) as e:  # ValueError for JSON decode
            last_err = e
            if attempt == retries:
                break
            time.sleep(backoff * (2**attempt))
    raise HttpError(f"Failed to fetch JSON from {url}: {last_err}")

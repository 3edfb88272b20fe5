import asyncio
import logging
from typing import Optional, Dict

import httpx

logger = logging.getLogger(__name__)


class HttpStatusError(RuntimeError):
    def __init__(self, status_code: int, url: str, preview: str):
        super().__init__(f"HTTP {status_code} for {url}: {preview}")
        self.status_code = status_code
        self.url = url


async def http_request(method: str, url: str, *, config: Optional[Dict] = None, data: Optional[str] = None) -> httpx.Response:
    """
    Core HTTP helper.

    Retries transport errors and non-2xx responses with exponential backoff;
    returns the first 2xx response, or raises the last failure.

    config keys: timeout, retries, backoff, headers, params.
    """
    cfg = dict(config or {})
    timeout = float(cfg.pop('timeout', 5.0))
    retries = max(0, int(cfg.pop('retries', 2)))
    backoff = float(cfg.pop('backoff', 0.2))
    headers = dict(cfg.pop('headers', {}))
    params = dict(cfg.pop('params', {}))

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        last_exc = None
        for attempt in range(retries + 1):
            try:
                body = data.encode('utf-8') if isinstance(data, str) else data
                if body is not None:
                    headers = {**headers}
                    headers.setdefault("Content-Type", "text/plain; charset=utf-8")
                resp = await client.request(
                    method.upper(),
                    url,
                    headers=headers,
                    params=params,
                    content=body,
                )
                if 200 <= resp.status_code < 300:
                    return resp
                preview = (resp.text or "")[:200]
                raise HttpStatusError(resp.status_code, url, preview)
            except (httpx.HTTPError, HttpStatusError) as e:
                last_exc = e
                if attempt < retries:
                    logger.debug("%s %s failed (%s); retry %d of %d", method.upper(), url, e, attempt + 1, retries)
                    await asyncio.sleep(backoff * (2 ** attempt))
                    continue
                raise last_exc


async def http_post(url: str, data: str, config: Optional[Dict] = None) -> httpx.Response:
    return await http_request('POST', url, config=config, data=data)

import asyncio
import logging
from typing import Optional, Dict, Any

import httpx

logger = logging.getLogger("latch.http")


async def http_request(method: str, url: str, *, config: Optional[Dict] = None, data: Any = None) -> Any:
    """
    Core HTTP helper.

    config keys:
      - timeout (seconds, default 5.0), retries (default 2), backoff (default 0.2)
      - headers, params
    Returns the deserialized body on 2xx; raises RuntimeError otherwise.
    """
    cfg = dict(config or {})
    timeout = float(cfg.pop('timeout', 5.0))
    retries = int(cfg.pop('retries', 2))
    backoff = float(cfg.pop('backoff', 0.2))
    headers = dict(cfg.pop('headers', {}) or {})
    params = dict(cfg.pop('params', {}) or {})

    body = None
    if data is not None:
        if isinstance(data, (bytes, bytearray)):
            body = bytes(data)
        elif isinstance(data, str):
            body = data.encode('utf-8')
            headers.setdefault("Content-Type", "text/plain; charset=utf-8")
        else:
            from latch.latch_serialize import to_json
            body = to_json(data, pretty=False).encode('utf-8')
            headers.setdefault("Content-Type", "application/json")

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        last_exc = None
        for attempt in range(retries + 1):
            try:
                resp = await client.request(
                    method.upper(),
                    url,
                    headers=headers,
                    params=params,
                    content=body,
                )
                if 200 <= resp.status_code < 300:
                    from latch.latch_serialize import deserialize
                    return deserialize(resp.content, content_type=resp.headers.get("Content-Type"))
                preview = (resp.text or "")[:200]
                raise RuntimeError(f"HTTP {resp.status_code} for {url}: {preview}")
            except Exception as e:
                last_exc = e
                if attempt < retries:
                    logger.debug("%s %s failed (attempt %d): %s", method.upper(), url, attempt + 1, e)
                    await asyncio.sleep(backoff * (2 ** attempt))
                    continue
                raise last_exc


async def http_get(url: str, config: Optional[Dict] = None) -> Any:
    return await http_request('GET', url, config=config)


async def fetch_request(request: Dict[str, Any], config: Optional[Dict] = None) -> Any:
    """
    Fulfil a pending engine request: {"url": ..., "method"?, "headers"?, "body"?}.
    The deserialized response body is the value to resume the task with.
    """
    if not isinstance(request, dict) or not request.get('url'):
        raise ValueError(f"Invalid fetch request: {request!r}")
    cfg = dict(config or {})
    if request.get('headers'):
        cfg['headers'] = {**dict(cfg.get('headers') or {}), **request['headers']}
    method = request.get('method') or 'GET'
    return await http_request(method, request['url'], config=cfg, data=request.get('body'))


__all__ = [
    "http_request",
    "http_get",
    "fetch_request",
]

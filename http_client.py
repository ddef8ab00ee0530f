"""
http_client.py
==============
Blocking HTTP facade over aiohttp.

The provisioning pipeline is sequential and synchronous, so callers use
``get_text`` / ``download_file``; each call runs its own event loop. The
coroutines underneath take the session as an argument and can be awaited
directly from async code.

No timeout is applied here. Callers that need a deadline impose it
outside the pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from pathlib import Path
from typing import Any, Awaitable, Callable, Coroutine, TypeVar, Union

import aiohttp

from errors import DownloadFailed, NetworkUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

CHUNK_SIZE = 8192


class HttpFetcher:
    """Fetches catalog JSON, checksum files and archives."""

    HEADERS = {"User-Agent": "JdkProvisioner/1.0"}

    def __init__(self, timeout: aiohttp.ClientTimeout | None = None) -> None:
        self.timeout = timeout or aiohttp.ClientTimeout(total=None)

    # ================================================================
    #  BLOCKING API
    # ================================================================

    def get_text(self, url: str) -> str:
        """GET *url* and return the body as text."""
        return self._run(self._with_session(self._read_text, url))

    def download_file(self, url: str, dest: Union[str, Path]) -> int:
        """Stream *url* into *dest*; returns the number of bytes written."""
        return self._run(self._with_session(self._stream_to_file, url, Path(dest)))

    # ================================================================
    #  ASYNC HELPERS
    # ================================================================

    async def _with_session(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
    ) -> T:
        async with aiohttp.ClientSession(headers=self.HEADERS, timeout=self.timeout) as session:
            return await func(session, *args)

    async def _read_text(self, session: aiohttp.ClientSession, url: str) -> str:
        logger.debug("GET %s", url)
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise DownloadFailed(f"GET {url} returned HTTP {resp.status}")
                return await resp.text()
        except aiohttp.ClientConnectionError as exc:
            raise NetworkUnavailable(f"Could not reach {url}: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise NetworkUnavailable(f"Timed out fetching {url}") from exc
        except aiohttp.ClientError as exc:
            raise DownloadFailed(f"GET {url} failed: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise DownloadFailed(f"GET {url} returned undecodable text: {exc}") from exc

    async def _stream_to_file(
        self,
        session: aiohttp.ClientSession,
        url: str,
        dest: Path,
    ) -> int:
        dest.parent.mkdir(parents=True, exist_ok=True)
        partial = dest.with_name(dest.name + ".part")
        downloaded = 0
        start_time = time.time()

        logger.info("Downloading %s → %s", url, dest)
        try:
            async with session.get(url) as resp:
                if resp.status != 200:
                    raise DownloadFailed(f"Download of {url} returned HTTP {resp.status}")
                with open(partial, "wb") as fh:
                    async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                        fh.write(chunk)
                        downloaded += len(chunk)
        except aiohttp.ClientConnectionError as exc:
            partial.unlink(missing_ok=True)
            raise NetworkUnavailable(f"Could not reach {url}: {exc}") from exc
        except asyncio.TimeoutError as exc:
            partial.unlink(missing_ok=True)
            raise NetworkUnavailable(f"Timed out downloading {url}") from exc
        except aiohttp.ClientError as exc:
            partial.unlink(missing_ok=True)
            raise DownloadFailed(f"Download of {url} failed: {exc}") from exc
        except DownloadFailed:
            partial.unlink(missing_ok=True)
            raise

        os.replace(partial, dest)
        elapsed = time.time() - start_time
        logger.info(
            "Download complete: %s (%.1f MB, %.1f MB/s)",
            dest.name, downloaded / (1024 * 1024),
            (downloaded / (1024 * 1024)) / max(elapsed, 0.1),
        )
        return downloaded

    # ================================================================
    #  EVENT LOOP
    # ================================================================

    @staticmethod
    def _run(coro: Coroutine[Any, Any, T]) -> T:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(coro)
        coro.close()
        raise RuntimeError("Event loop already running; await the HttpFetcher coroutines instead")

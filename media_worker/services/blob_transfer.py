from __future__ import annotations

import logging
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT = httpx.Timeout(60.0, read=120.0)
USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)


class DownloadError(Exception):
    pass


class DownloadTooLarge(DownloadError):
    pass


def download_to_file(
    url: str,
    dest: Path,
    max_bytes: int,
    *,
    client: httpx.Client | None = None,
) -> int:
    """
    Stream `url` into `dest` and return the number of bytes written.

    A declared Content-Length above max_bytes aborts before any body is read;
    without a declared length the transfer is cut the moment the running
    total crosses max_bytes.
    """
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=DOWNLOAD_TIMEOUT, follow_redirects=True, headers={"User-Agent": USER_AGENT})

    try:
        with client.stream("GET", url) as r:
            if not r.is_success:
                raise DownloadError(f"Download failed: {r.status_code} {r.reason_phrase}")

            declared = r.headers.get("content-length")
            if declared and declared.isdigit() and int(declared) > max_bytes:
                raise DownloadTooLarge(f"Video too large ({declared} bytes)")

            written = 0
            with open(dest, "wb") as f:
                for chunk in r.iter_bytes():
                    written += len(chunk)
                    if written > max_bytes:
                        raise DownloadTooLarge("Video exceeded max size")
                    f.write(chunk)

        logger.debug("Downloaded %s bytes from %s", written, url)
        return written
    except httpx.HTTPError as e:
        raise DownloadError(f"Download failed: {e}") from e
    finally:
        if owns_client:
            client.close()

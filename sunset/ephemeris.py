"""Locating and downloading the DE kernel used by the ephemeris oracle."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

import httpx

LOGGER = logging.getLogger(__name__)

DEFAULT_EPHEMERIS_URL = (
    "https://naif.jpl.nasa.gov/pub/naif/generic_kernels/spk/planets/de442.bsp"
)
DEFAULT_EPHEMERIS_FILENAME = "de442.bsp"
DEFAULT_CACHE_DIR = Path.home() / ".sunset-milestones" / "kernels"


class EphemerisAcquisitionError(RuntimeError):
    """Raised when no kernel is available and downloading one failed."""


def download_kernel(url: str, destination: Path) -> None:
    """Stream *url* into *destination*, removing partial files on failure."""

    destination.parent.mkdir(parents=True, exist_ok=True)
    LOGGER.info(
        json.dumps({"event": "ephemeris_downloading", "url": url, "destination": str(destination)})
    )
    received = 0
    try:
        with httpx.stream("GET", url, timeout=httpx.Timeout(120.0, connect=30.0)) as response:
            response.raise_for_status()
            with destination.open("wb") as handle:
                for chunk in response.iter_bytes(chunk_size=1 << 20):
                    handle.write(chunk)
                    received += len(chunk)
    except (httpx.HTTPError, OSError) as exc:
        destination.unlink(missing_ok=True)
        raise EphemerisAcquisitionError(f"Failed to download ephemeris from {url}: {exc}") from exc
    LOGGER.info(
        json.dumps(
            {
                "event": "ephemeris_downloaded",
                "url": url,
                "destination": str(destination),
                "bytes": received,
            }
        )
    )


def ensure_kernel_dir(path: Path, url: str = DEFAULT_EPHEMERIS_URL) -> Path:
    """Return a directory holding at least one ``.bsp`` kernel.

    *path* may name a kernel file or a directory. A missing kernel is
    downloaded from *url* first.
    """

    if path.suffix.lower() == ".bsp":
        if not path.exists():
            download_kernel(url, path)
        return path.parent

    if path.exists() and not path.is_dir():
        raise EphemerisAcquisitionError(f"Ephemeris path is not a .bsp file or directory: {path}")
    if not any(path.glob("*.bsp")):
        download_kernel(url, path / DEFAULT_EPHEMERIS_FILENAME)
    return path


def resolve_kernel_dir(override: Optional[str] = None, cache_dir: Optional[str] = None) -> Path:
    """Resolve the kernel directory from arguments or ``DE_BSP``/``DE_BSP_CACHE_DIR``."""

    override = override or os.environ.get("DE_BSP")
    if override:
        return ensure_kernel_dir(Path(override).expanduser())
    cache_root = Path(
        cache_dir or os.environ.get("DE_BSP_CACHE_DIR", str(DEFAULT_CACHE_DIR))
    ).expanduser()
    return ensure_kernel_dir(cache_root)

"""
Terraform version resolution.

Resolution order:
1. `terraform` on PATH, if its version matches
2. The local cache, <cache_dir>/<version>/terraform
3. Download from the HashiCorp release site into the cache
"""

import json
import logging
import os
import platform
import shutil
import subprocess
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

import requests

from iacrunner.errors import ToolResolutionError

logger = logging.getLogger("iacrunner.terraform")

DEFAULT_VERSION = "1.9.8"
RELEASES_URL = "https://releases.hashicorp.com/terraform"

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
}


def default_cache_dir() -> Path:
    """Cache root for downloaded binaries."""
    try:
        return Path.home() / ".iacrunner" / "terraform"
    except RuntimeError:
        return Path(tempfile.gettempdir()) / ".iacrunner" / "terraform"


def binary_name() -> str:
    return "terraform.exe" if platform.system() == "Windows" else "terraform"


def download_url(version: str) -> str:
    """Release archive URL for this platform."""
    os_name = platform.system().lower()
    machine = platform.machine().lower()
    arch = _ARCH_ALIASES.get(machine, machine)
    return f"{RELEASES_URL}/{version}/terraform_{version}_{os_name}_{arch}.zip"


def resolve_version(
    version: Optional[str] = None,
    cache_dir: Optional[str] = None,
    session: Optional[requests.Session] = None,
    timeout: float = 300.0,
) -> str:
    """
    Return the path to a terraform binary for the requested version.

    Args:
        version: Requested version; empty means DEFAULT_VERSION
        cache_dir: Cache root (default: ~/.iacrunner/terraform)
        session: Optional HTTP session used for downloads
        timeout: Download timeout in seconds

    Raises:
        ToolResolutionError: If no binary can be found or downloaded
    """
    version = version or DEFAULT_VERSION

    system_path = shutil.which("terraform")
    if system_path and installed_version(system_path) == version:
        logger.info(f"Using system terraform: version={version} path={system_path}")
        return system_path

    cache_root = Path(cache_dir) if cache_dir else default_cache_dir()
    cached_path = cache_root / version / binary_name()
    if cached_path.is_file():
        logger.info(f"Using cached terraform: version={version} path={cached_path}")
        return str(cached_path)

    logger.info(f"Downloading terraform: version={version}")
    download(version, cache_root / version, session=session, timeout=timeout)

    if not cached_path.is_file():
        raise ToolResolutionError(f"terraform {version} archive did not contain {binary_name()}")

    logger.info(f"Terraform downloaded: version={version} path={cached_path}")
    return str(cached_path)


def installed_version(path: str) -> Optional[str]:
    """Version reported by a terraform binary, or None if it cannot be read."""
    try:
        output = subprocess.run(
            [path, "version", "-json"], capture_output=True, text=True, timeout=30
        )
        if output.returncode == 0:
            return json.loads(output.stdout).get("terraform_version")
    except (OSError, subprocess.TimeoutExpired, ValueError, AttributeError) as e:
        logger.debug(f"JSON version probe failed for {path}: {e}")

    # Fallback: parse "Terraform v1.9.8\n..."
    try:
        output = subprocess.run([path, "version"], capture_output=True, text=True, timeout=30)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Version probe failed for {path}: {e}")
        return None

    if output.returncode != 0:
        return None
    parts = output.stdout.splitlines()[0].split() if output.stdout else []
    if len(parts) >= 2:
        return parts[1].lstrip("v")
    return None


def download(
    version: str,
    version_dir: Path,
    session: Optional[requests.Session] = None,
    timeout: float = 300.0,
) -> None:
    """
    Download and unpack a release archive into version_dir.

    Raises:
        ToolResolutionError: On any download or extraction failure
    """
    url = download_url(version)
    http = session or requests.Session()

    try:
        version_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise ToolResolutionError(f"creating cache dir: {e}") from e

    zip_path = version_dir / "terraform.zip"
    try:
        with http.get(url, stream=True, timeout=timeout) as response:
            if response.status_code != 200:
                raise ToolResolutionError(f"downloading {url}: HTTP {response.status_code}")
            with open(zip_path, "wb") as archive:
                for chunk in response.iter_content(chunk_size=1024 * 1024):
                    archive.write(chunk)

        with zipfile.ZipFile(zip_path) as archive:
            archive.extractall(version_dir)
    except requests.exceptions.RequestException as e:
        raise ToolResolutionError(f"downloading {url}: {e}") from e
    except (OSError, zipfile.BadZipFile) as e:
        raise ToolResolutionError(f"unpacking terraform {version}: {e}") from e
    finally:
        if zip_path.exists():
            zip_path.unlink()

    binary = version_dir / binary_name()
    if binary.exists():
        os.chmod(binary, 0o755)

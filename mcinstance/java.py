import asyncio
import io
import os
import pathlib
import logging
import re
import tarfile
import tempfile
import zipfile
from typing import Dict, Optional

import aiohttp
import aiofiles.os

from .environment import PlatformContext
from .errors import FilesystemFailure, HttpStatusFailure, LauncherError, NetworkFailure

log = logging.getLogger(__name__)

ADOPTIUM_API_BASE = 'https://api.adoptium.net/v3'
DEFAULT_IMAGE_TYPE = 'jre'

API_OS_NAMES = {'windows': 'windows', 'osx': 'mac', 'linux': 'linux'}
API_ARCH_NAMES = {'x64': 'x64', 'arm64': 'aarch64', 'x86': 'x86', 'arm32': 'arm'}

_MC_VERSION_RE = re.compile(r'^1\.(\d+)(?:\.(\d+))?')


def required_java_version(mc_version: str, java_major: Optional[int] = None) -> int:
    """
    Java major version a game version runs on.

    ``java_major`` (from the version document) wins when given. Versions that
    do not look like ``1.x[.y]`` are treated as newer than every known one.
    """
    if java_major:
        return java_major
    match = _MC_VERSION_RE.match(mc_version)
    if not match:
        return 21
    minor = int(match.group(1))
    patch = int(match.group(2) or 0)
    if minor <= 16:
        return 8
    if minor == 17:
        return 16
    if minor in (18, 19):
        return 17
    if minor == 20:
        return 21 if patch >= 5 else 17
    return 21


def get_api_os_arch(ctx: PlatformContext) -> Optional[Dict[str, str]]:
    """Maps the platform to Adoptium API values, None when unsupported."""
    api_os = API_OS_NAMES.get(ctx.os_name)
    api_arch = API_ARCH_NAMES.get(ctx.arch)
    if api_os is None:
        log.error(f"Unsupported operating system: {ctx.os_name}")
        return None
    if api_arch is None:
        log.error(f"Unsupported architecture: {ctx.arch}")
        return None
    return {"os": api_os, "arch": api_arch}


def java_runtime_dir(basepath: pathlib.Path, version: int) -> pathlib.Path:
    return pathlib.Path(basepath) / 'java-runtime' / f"jre-{version}"


def _relative_executable(ctx: PlatformContext) -> pathlib.Path:
    if ctx.is_windows:
        return pathlib.Path('bin') / 'java.exe'
    if ctx.os_name == 'osx':
        return pathlib.Path('Contents') / 'Home' / 'bin' / 'java'
    return pathlib.Path('bin') / 'java'


def find_java_executable(extract_dir: pathlib.Path, ctx: PlatformContext) -> Optional[pathlib.Path]:
    """
    Finds the Java executable inside an extracted runtime.

    Archives usually unpack into a single top-level directory, so the first
    subdirectory is checked before ``extract_dir`` itself.
    """
    if not extract_dir.is_dir():
        return None

    candidates = []
    try:
        for entry in os.scandir(extract_dir):
            if entry.is_dir():
                candidates.append(pathlib.Path(entry.path))
                break
    except OSError as e:
        log.warning(f"Could not scan directory {extract_dir}: {e}")
    candidates.append(extract_dir)

    relative = _relative_executable(ctx)
    for base in candidates:
        java_path = base / relative
        log.debug(f"Checking for Java executable at {java_path}")
        if java_path.is_file() and os.access(java_path, os.X_OK):
            return java_path.resolve()
    return None


# Sync archive extraction (run in executor)
def _extract_zip(zip_data: bytes, dest_path: pathlib.Path):
    with io.BytesIO(zip_data) as zip_buffer:
        with zipfile.ZipFile(zip_buffer, 'r') as zip_ref:
            zip_ref.extractall(dest_path)


def _extract_tar(tar_data: bytes, dest_path: pathlib.Path):
    with tempfile.NamedTemporaryFile(suffix='.tar.gz', prefix='java-dl-', delete=False) as tmp:
        tmp.write(tar_data)
        tar_path = pathlib.Path(tmp.name)
    try:
        with tarfile.open(tar_path, "r:gz") as tar_ref:
            tar_ref.extractall(path=dest_path)
    finally:
        tar_path.unlink(missing_ok=True)


def extract_runtime(data: bytes, archive_type: str, dest_path: pathlib.Path):
    try:
        if archive_type == 'zip':
            _extract_zip(data, dest_path)
        else:
            _extract_tar(data, dest_path)
    except (zipfile.BadZipFile, tarfile.TarError) as e:
        raise FilesystemFailure(f"Invalid Java runtime archive: {e}") from e
    except OSError as e:
        raise FilesystemFailure(f"Failed to extract Java runtime to {dest_path}: {e}") from e


async def download_java(
    session: aiohttp.ClientSession,
    version: int,
    destination_dir: pathlib.Path,
    ctx: PlatformContext,
    image_type: str = DEFAULT_IMAGE_TYPE,
    vendor: str = 'eclipse',
    jvm_impl: str = 'hotspot',
) -> str:
    """
    Makes a Java runtime of the given major version available and returns
    the path to its executable.

    An executable already present under ``destination_dir`` is reused;
    otherwise the latest GA build for the platform is downloaded from the
    Adoptium API and unpacked there.
    """
    destination_dir = pathlib.Path(destination_dir).resolve()
    loop = asyncio.get_running_loop()

    existing = await loop.run_in_executor(None, find_java_executable, destination_dir, ctx)
    if existing:
        log.info(f"Using Java {version} at {existing}")
        return str(existing)

    platform_info = get_api_os_arch(ctx)
    if not platform_info:
        raise LauncherError(f"No Java runtime available for {ctx.os_name}-{ctx.arch}")
    api_os, api_arch = platform_info["os"], platform_info["arch"]

    api_url = f"{ADOPTIUM_API_BASE}/binary/latest/{version}/ga/{api_os}/{api_arch}/{image_type}/{jvm_impl}/normal/{vendor}"
    log.info(f"Downloading Java {version} ({image_type}) for {api_os}-{api_arch}...")
    try:
        async with session.get(api_url, allow_redirects=True) as response:
            if not response.ok:
                raise HttpStatusFailure(
                    f"HTTP {response.status} while downloading Java {version} for {api_os}-{api_arch}",
                    response.status,
                    api_url,
                )
            download_url = str(response.url)
            file_data = await response.read()
    except aiohttp.ClientError as e:
        raise NetworkFailure(f"Failed to download Java {version}: {e}") from e
    except asyncio.TimeoutError as e:
        raise NetworkFailure(f"Timed out downloading Java {version}") from e

    if download_url.endswith('.zip'):
        archive_type = 'zip'
    elif download_url.endswith('.tar.gz'):
        archive_type = 'tar.gz'
    else:
        archive_type = 'zip' if api_os == 'windows' else 'tar.gz'
    log.debug(f"Resolved download URL: {download_url} ({archive_type})")

    try:
        await aiofiles.os.makedirs(destination_dir, exist_ok=True)
    except OSError as e:
        raise FilesystemFailure(f"Failed to create {destination_dir}: {e}") from e

    log.info(f"Extracting Java runtime to {destination_dir}...")
    await loop.run_in_executor(None, extract_runtime, file_data, archive_type, destination_dir)

    java_path = await loop.run_in_executor(None, find_java_executable, destination_dir, ctx)
    if java_path is None:
        raise FilesystemFailure(f"Java runtime extracted to {destination_dir} but no executable was found")
    log.info(f"Java executable found at: {java_path}")
    return str(java_path)

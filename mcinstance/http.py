import asyncio
import json
import logging
import pathlib
from typing import Any, Optional

import aiofiles
import aiofiles.os
import aiohttp
from tqdm.asyncio import tqdm

from .errors import FilesystemFailure, HttpStatusFailure, NetworkFailure, ParseFailure

log = logging.getLogger(__name__)

USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
CHUNK_SIZE = 8192


def create_session() -> aiohttp.ClientSession:
    """One session per launch; callers close it."""
    return aiohttp.ClientSession(headers={'User-Agent': USER_AGENT})


async def file_exists(file_path: pathlib.Path) -> bool:
    """Checks if a file exists asynchronously."""
    try:
        return await aiofiles.os.path.isfile(file_path)
    except OSError:
        return False


async def remove_quietly(file_path: pathlib.Path):
    try:
        if await aiofiles.os.path.exists(file_path):
            await aiofiles.os.remove(file_path)
    except OSError as e:
        log.warning(f"Could not remove incomplete file {file_path}: {e}")


async def fetch_bytes(session: aiohttp.ClientSession, url: str, what: str) -> bytes:
    """GETs ``url`` and returns the body. ``what`` names the document in errors."""
    try:
        async with session.get(url) as response:
            if not response.ok:
                raise HttpStatusFailure(f"HTTP {response.status} while fetching {what} from {url}", response.status, url)
            return await response.read()
    except aiohttp.ClientError as e:
        raise NetworkFailure(f"Failed to fetch {what}: {e}") from e
    except asyncio.TimeoutError as e:
        raise NetworkFailure(f"Timed out fetching {what} from {url}") from e


def parse_json(content: bytes, what: str) -> Any:
    try:
        return json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseFailure(f"Failed to parse {what}: {e}") from e


async def fetch_json(session: aiohttp.ClientSession, url: str, what: str) -> Any:
    return parse_json(await fetch_bytes(session, url, what), what)


async def read_json(file_path: pathlib.Path, what: str) -> Any:
    try:
        async with aiofiles.open(file_path, 'rb') as f:
            content = await f.read()
    except OSError as e:
        raise FilesystemFailure(f"Failed to read {what} {file_path}: {e}") from e
    return parse_json(content, what)


async def write_bytes(file_path: pathlib.Path, content: bytes, what: str):
    try:
        await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
        async with aiofiles.open(file_path, 'wb') as f:
            await f.write(content)
    except OSError as e:
        await remove_quietly(file_path)
        raise FilesystemFailure(f"Failed to write {what} {file_path}: {e}") from e


async def download_file(
    session: aiohttp.ClientSession,
    url: str,
    dest_path: pathlib.Path,
    pbar: Optional[tqdm] = None,
) -> None:
    """Streams ``url`` into ``dest_path``, creating parent directories.

    The downloaded bytes are not checked against any declared hash.
    """
    try:
        await aiofiles.os.makedirs(dest_path.parent, exist_ok=True)
    except OSError as e:
        raise FilesystemFailure(f"Failed to create directory {dest_path.parent}: {e}") from e

    try:
        async with session.get(url) as response:
            if not response.ok:
                raise HttpStatusFailure(f"HTTP {response.status} while downloading {url}", response.status, url)
            async with aiofiles.open(dest_path, 'wb') as f:
                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
    except HttpStatusFailure:
        await remove_quietly(dest_path)
        raise
    except aiohttp.ClientError as e:
        await remove_quietly(dest_path)
        raise NetworkFailure(f"Failed to download {url}: {e}") from e
    except asyncio.TimeoutError as e:
        await remove_quietly(dest_path)
        raise NetworkFailure(f"Timed out downloading {url}") from e
    except OSError as e:
        await remove_quietly(dest_path)
        raise FilesystemFailure(f"Failed to write {dest_path}: {e}") from e

    if pbar: pbar.update(1)

"""Downloads the loose asset objects listed by a version's asset index.

Objects are fetched in fixed-size batches. Batches run one after the other,
the objects of one batch run concurrently. Each object gets a few attempts
with a short growing delay; an object that still fails is reported but
never stops its siblings. Once the work list is exhausted, any failure
fails the whole step with a bounded digest of the messages.
"""
import asyncio
import logging
import pathlib
from typing import List, Optional, Tuple

import aiofiles
import aiofiles.os
import aiohttp
from tqdm.asyncio import tqdm

from .errors import ParseFailure, PartialDownloadFailure
from .http import USER_AGENT, fetch_bytes, file_exists, read_json, remove_quietly, write_bytes
from .models import AssetObject, GameDirectories, VersionDetails, parse_asset_index

log = logging.getLogger(__name__)

RESOURCES_URL = 'https://resources.download.minecraft.net'
BATCH_SIZE = 10
MAX_ATTEMPTS = 3
RETRY_DELAY = 0.1  # seconds, multiplied by the attempt number
BATCH_DELAY = 0.1
REQUEST_TIMEOUT = 30
MAX_REPORTED_ERRORS = 10

AssetWork = Tuple[AssetObject, pathlib.Path]


def asset_url(obj: AssetObject, resources_url: str = RESOURCES_URL) -> str:
    return f"{resources_url.rstrip('/')}/{obj.hash[:2]}/{obj.hash}"


def format_failure_report(failures: List[str]) -> str:
    """Summary of failed objects: the count, then at most the first ten messages."""
    error_count = len(failures)
    reported_errors = failures[:MAX_REPORTED_ERRORS]
    error_msg = f"{error_count} assets failed to download. First {len(reported_errors)} errors:"
    for error in reported_errors:
        error_msg += f"\n  {error}"
    if error_count > MAX_REPORTED_ERRORS:
        error_msg += f"\n  ... and {error_count - MAX_REPORTED_ERRORS} more errors"
    return error_msg


async def download_asset(
    session: aiohttp.ClientSession,
    url: str,
    asset_path: pathlib.Path,
    name: str,
    attempt: int,
) -> Optional[str]:
    """One download attempt. Returns None on success, else the failure message."""
    timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
    try:
        async with session.get(url, timeout=timeout, headers={'User-Agent': USER_AGENT}) as resp:
            if not resp.ok:
                return f"HTTP {resp.status} for asset {name} (attempt {attempt})"
            content = await resp.read()
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        return f"Failed to download asset {name} (attempt {attempt}): {str(e) or type(e).__name__}"

    try:
        await aiofiles.os.makedirs(asset_path.parent, exist_ok=True)
        async with aiofiles.open(asset_path, 'wb') as f:
            await f.write(content)
    except OSError as e:
        await remove_quietly(asset_path)
        return f"Failed to write asset file {asset_path} (attempt {attempt}): {e}"
    return None


async def download_asset_with_retry(
    session: aiohttp.ClientSession,
    url: str,
    asset_path: pathlib.Path,
    name: str,
) -> Optional[str]:
    """Up to MAX_ATTEMPTS attempts, waiting 100ms * attempt after each failure."""
    error = None
    for attempt in range(1, MAX_ATTEMPTS + 1):
        error = await download_asset(session, url, asset_path, name, attempt)
        if error is None:
            return None
        if attempt < MAX_ATTEMPTS:
            log.debug(f"Retrying asset {name}: {error}")
            await asyncio.sleep(RETRY_DELAY * attempt)
    return error


async def download_assets(
    session: aiohttp.ClientSession,
    work: List[AssetWork],
    resources_url: str = RESOURCES_URL,
    batch_size: int = BATCH_SIZE,
) -> Tuple[int, List[str]]:
    """Downloads ``work`` batch by batch. Returns (downloaded count, failure messages)."""
    downloaded = 0
    failed: List[str] = []
    asset_pbar = tqdm(total=len(work), desc="Assets", unit="file", leave=False)
    try:
        for start in range(0, len(work), batch_size):
            batch = work[start:start + batch_size]
            results = await asyncio.gather(*(
                download_asset_with_retry(session, asset_url(obj, resources_url), path, obj.name)
                for obj, path in batch
            ))
            for error in results:
                if error is None:
                    downloaded += 1
                    if downloaded % 50 == 0:
                        log.debug(f"Downloaded {downloaded} assets...")
                else:
                    failed.append(error)
            asset_pbar.update(len(batch))
            # Rate limiting between batches
            await asyncio.sleep(BATCH_DELAY)
    finally:
        asset_pbar.close()
    return downloaded, failed


def _missing_objects(dirs: GameDirectories, objects: List[AssetObject]) -> List[AssetWork]:
    work = []
    seen = set()
    for obj in objects:
        # Several names may share one object.
        if obj.hash in seen:
            continue
        seen.add(obj.hash)
        asset_path = dirs.asset_object(obj.hash)
        if not asset_path.is_file():
            work.append((obj, asset_path))
    return work


async def ensure_assets(
    session: aiohttp.ClientSession,
    dirs: GameDirectories,
    details: VersionDetails,
    resources_url: str = RESOURCES_URL,
):
    """Makes sure the asset index and every object it lists are on disk."""
    index_ref = details.asset_index
    if index_ref is None:
        raise ParseFailure(f"Version {details.id} has no asset index")

    index_path = dirs.asset_index(index_ref.id)
    log.info(f"Asset index {index_ref.id}: {index_path}")
    if not await file_exists(index_path):
        log.info(f"Downloading asset index for version {details.id}")
        content = await fetch_bytes(session, index_ref.url, 'asset index')
        await write_bytes(index_path, content, 'asset index')

    objects = parse_asset_index(await read_json(index_path, 'asset index'))
    log.info(f"Found {len(objects)} assets in index")

    loop = asyncio.get_running_loop()
    work = await loop.run_in_executor(None, _missing_objects, dirs, objects)
    if not work:
        log.info(f"All assets are already downloaded for version {details.id}")
        return

    log.info(f"Downloading {len(work)} missing assets for version {details.id}")
    downloaded, failed = await download_assets(session, work, resources_url)
    log.info(f"Asset download complete: {downloaded} downloaded, {len(failed)} failed")

    if failed:
        raise PartialDownloadFailure(format_failure_report(failed), failed, downloaded)

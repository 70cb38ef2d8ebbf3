import logging

import aiofiles.os
import aiohttp

from .errors import FilesystemFailure, ParseFailure, VersionNotFound
from .http import download_file, fetch_bytes, fetch_json, file_exists, parse_json, read_json, write_bytes
from .models import GameDirectories, VersionDetails, VersionManifest, merge_manifests

log = logging.getLogger(__name__)

VERSION_MANIFEST_URL = 'https://piston-meta.mojang.com/mc/game/version_manifest_v2.json'


async def fetch_manifest(session: aiohttp.ClientSession, manifest_url: str = VERSION_MANIFEST_URL) -> VersionManifest:
    log.info(f"Fetching version manifest from {manifest_url}")
    return VersionManifest.from_dict(await fetch_json(session, manifest_url, 'version manifest'))


async def ensure_client_jar(session: aiohttp.ClientSession, dirs: GameDirectories, details: VersionDetails):
    jar_path = dirs.version_jar(details.id)
    if await file_exists(jar_path):
        return
    if details.client is None:
        raise ParseFailure(f"Version {details.id} has no client download")
    log.info(f"Downloading client jar for {details.id}...")
    await download_file(session, details.client.url, jar_path)


async def resolve(
    session: aiohttp.ClientSession,
    dirs: GameDirectories,
    version_id: str,
    manifest_url: str = VERSION_MANIFEST_URL,
) -> VersionDetails:
    """
    Returns the details of ``version_id``, fetching them on first use.

    The document stored at ``versions/<id>/<id>.json`` acts as a cache: when
    present nothing but a missing client jar is fetched. Otherwise the
    manifest is consulted, the client jar downloaded and the document
    persisted exactly as served. Nothing here is retried.
    """
    json_path = dirs.version_json(version_id)
    if await file_exists(json_path):
        log.info(f"Using stored version document {json_path}")
        details = VersionDetails.from_dict(await read_json(json_path, f"version {version_id} document"))
        if details.inherits_from is None:
            await ensure_client_jar(session, dirs, details)
        return details

    manifest = await fetch_manifest(session, manifest_url)
    entry = manifest.find(version_id)
    if entry is None:
        raise VersionNotFound(version_id, f"Version {version_id} not found in manifest")

    log.info(f"Fetching version details for {version_id} from {entry.url}")
    content = await fetch_bytes(session, entry.url, f"version details for {version_id}")
    details = VersionDetails.from_dict(parse_json(content, f"version details for {version_id}"))

    try:
        await aiofiles.os.makedirs(dirs.version_dir(version_id), exist_ok=True)
    except OSError as e:
        raise FilesystemFailure(f"Failed to create version directory: {e}") from e

    await ensure_client_jar(session, dirs, details)
    await write_bytes(json_path, content, 'version JSON')
    return details


async def resolve_launch_version(
    session: aiohttp.ClientSession,
    dirs: GameDirectories,
    version_id: str,
    manifest_url: str = VERSION_MANIFEST_URL,
) -> VersionDetails:
    """Like :func:`resolve`, but merges documents declaring ``inheritsFrom``
    (as written by mod-loader installers) with their parent version."""
    details = await resolve(session, dirs, version_id, manifest_url)
    if details.inherits_from is None:
        return details

    parent = await resolve_launch_version(session, dirs, details.inherits_from, manifest_url)
    return VersionDetails.from_dict(merge_manifests(details.raw, parent.raw))

import logging
import pathlib
from typing import List, Tuple

import aiohttp
from tqdm.asyncio import tqdm

from .environment import PlatformContext
from .http import download_file, file_exists
from .models import Artifact, GameDirectories, VersionDetails
from .natives import native_artifact
from .rules import applies

log = logging.getLogger(__name__)


def library_artifacts(details: VersionDetails, ctx: PlatformContext) -> List[Tuple[str, Artifact]]:
    """
    Every artifact the version needs on this platform, in manifest order.

    That is the main artifact of each rule-passing library plus, for
    libraries shipping natives, the classifier for the current platform.
    """
    artifacts = []
    for lib in details.libraries:
        if not applies(lib.rules, ctx):
            log.debug(f"Skipping library due to rules: {lib.name}")
            continue
        if lib.artifact is not None and lib.artifact.path:
            artifacts.append((lib.name, lib.artifact))
        native = native_artifact(lib, ctx)
        if native is not None:
            artifacts.append((f"{lib.name}:natives", native))
    return artifacts


async def ensure_libraries(
    session: aiohttp.ClientSession,
    dirs: GameDirectories,
    details: VersionDetails,
    ctx: PlatformContext,
):
    """
    Downloads the missing library files of a version, one at a time.

    A library already on disk counts as satisfied. The first failed
    download aborts the whole step.
    """
    log.info('Processing library list...')
    pending: List[Tuple[str, str, pathlib.Path]] = []
    for name, artifact in library_artifacts(details, ctx):
        lib_path = dirs.library(artifact.path)
        if await file_exists(lib_path):
            continue
        if not artifact.url:
            # Installer-provided loader libraries have no public URL.
            log.warning(f"Library {name} is missing and has no download URL, skipping.")
            continue
        pending.append((name, artifact.url, lib_path))

    if not pending:
        log.info('All libraries are present.')
        return

    log.info(f"Downloading {len(pending)} library files...")
    lib_pbar = tqdm(total=len(pending), desc="Libraries", unit="file", leave=False)
    try:
        for name, url, lib_path in pending:
            log.debug(f"Downloading library: {name}")
            await download_file(session, url, lib_path, pbar=lib_pbar)
    finally:
        lib_pbar.close()
    log.info('Library download complete.')

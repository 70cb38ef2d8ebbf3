import asyncio
import logging
import pathlib
import zipfile
from typing import List, Optional

import aiofiles.os

from .environment import PlatformContext
from .errors import FilesystemFailure
from .models import Artifact, GameDirectories, Library, VersionDetails
from .rules import applies

log = logging.getLogger(__name__)

NATIVE_CLASSIFIERS = {
    'windows': 'natives-windows',
    'linux': 'natives-linux',
    'osx': 'natives-macos',
}
NATIVE_SUFFIXES = ('.dll', '.so', '.dylib')


def native_classifier_key(library: Library, ctx: PlatformContext) -> Optional[str]:
    """Classifier holding the library's natives for the platform, if any."""
    if not library.natives or ctx.os_name not in NATIVE_CLASSIFIERS:
        return None
    raw_classifier = library.natives.get(ctx.os_name, NATIVE_CLASSIFIERS[ctx.os_name])
    return raw_classifier.replace('${arch}', ctx.arch_bits)


def native_artifact(library: Library, ctx: PlatformContext) -> Optional[Artifact]:
    key = native_classifier_key(library, ctx)
    if key is None:
        return None
    artifact = library.classifiers.get(key)
    if artifact is None or not artifact.path:
        return None
    return artifact


def _is_excluded(name: str, exclude: List[str]) -> bool:
    return any(name.startswith(prefix) for prefix in exclude)


# Sync zip extraction (run in executor)
def extract_native_archive(jar_path: pathlib.Path, natives_dir: pathlib.Path, exclude: Optional[List[str]] = None) -> List[str]:
    """
    Copies the shared libraries out of ``jar_path`` into ``natives_dir``.

    Only entries ending in a shared-library suffix are written, under their
    base file name. Existing files are overwritten. Returns the names
    written.
    """
    written = []
    try:
        with zipfile.ZipFile(jar_path, 'r') as zip_ref:
            for member in zip_ref.infolist():
                if member.is_dir() or not member.filename.endswith(NATIVE_SUFFIXES):
                    continue
                if exclude and _is_excluded(member.filename, exclude):
                    continue
                file_name = member.filename.rsplit('/', 1)[-1]
                with zip_ref.open(member) as src, open(natives_dir / file_name, 'wb') as dst:
                    dst.write(src.read())
                written.append(file_name)
    except zipfile.BadZipFile as e:
        raise FilesystemFailure(f"Failed to open zip archive {jar_path}: {e}") from e
    except OSError as e:
        raise FilesystemFailure(f"Failed to extract natives from {jar_path}: {e}") from e
    return written


async def ensure_natives(dirs: GameDirectories, details: VersionDetails, game_dir: pathlib.Path, ctx: PlatformContext):
    """Unpacks the platform's native libraries into ``<game_dir>/natives``."""
    natives_dir = game_dir / 'natives'
    log.info(f"Extracting native libraries to {natives_dir}")
    try:
        await aiofiles.os.makedirs(natives_dir, exist_ok=True)
    except OSError as e:
        raise FilesystemFailure(f"Failed to create natives directory: {e}") from e

    loop = asyncio.get_running_loop()
    extracted = 0
    for library in details.libraries:
        if not library.natives or not applies(library.rules, ctx):
            continue
        artifact = native_artifact(library, ctx)
        if artifact is None:
            log.debug(f"No natives for {ctx.os_name} in {library.name}")
            continue
        jar_path = dirs.library(artifact.path)
        if not await aiofiles.os.path.isfile(jar_path):
            log.warning(f"Native archive not found, skipping: {jar_path}")
            continue
        log.debug(f"Extracting native library from: {jar_path}")
        written = await loop.run_in_executor(None, extract_native_archive, jar_path, natives_dir, library.extract_exclude)
        extracted += len(written)

    log.info(f"Native extraction complete ({extracted} files).")

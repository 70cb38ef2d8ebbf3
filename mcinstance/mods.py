import logging
import pathlib

import aiohttp
from tqdm.asyncio import tqdm

from .http import download_file, file_exists
from .models import Instance

log = logging.getLogger(__name__)


def mods_dir(game_dir: pathlib.Path) -> pathlib.Path:
    return game_dir / 'mods'


async def ensure_mods(session: aiohttp.ClientSession, instance: Instance, game_dir: pathlib.Path):
    """Downloads the instance's mods into ``<game_dir>/mods``, skipping those already there."""
    mods = instance.mods
    if not mods:
        return
    target_dir = mods_dir(game_dir)
    missing = [mod for mod in mods if not await file_exists(target_dir / mod.name)]
    if not missing:
        log.info(f"All {len(mods)} mods are present.")
        return

    log.info(f"Downloading {len(missing)} mods to {target_dir}")
    mod_pbar = tqdm(total=len(missing), desc="Mods", unit="file", leave=False)
    try:
        for mod in missing:
            log.debug(f"Downloading mod: {mod.name}")
            await download_file(session, mod.url, target_dir / mod.name, pbar=mod_pbar)
    finally:
        mod_pbar.close()

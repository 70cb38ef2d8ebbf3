"""Runs the official mod-loader installers against the shared game directory.

Each loader family ships an installer jar that writes a version document
(and usually libraries) under ``versions/`` and ``libraries/``. The jar is
fetched with requests into a temporary directory and run with the selected
Java executable. An installation is considered done once the loader's
version document exists.
"""
import asyncio
import json
import logging
import pathlib
import tempfile
from dataclasses import dataclass
from typing import List, Optional

import aiofiles
import aiofiles.os
import requests

from .errors import FilesystemFailure, HttpStatusFailure, InstallerFailed, LauncherError, NetworkFailure
from .http import USER_AGENT, file_exists
from .models import GameDirectories, Instance, LaunchContext
from .replacer import DEFAULT_ACCESS_TOKEN, DEFAULT_USERNAME, DEFAULT_UUID, DEFAULT_XUID

log = logging.getLogger(__name__)

FORGE_MAVEN = 'https://maven.minecraftforge.net/net/minecraftforge/forge'
NEOFORGE_MAVEN = 'https://maven.neoforged.net/releases/net/neoforged/neoforge'
FABRIC_INSTALLER_VERSION = '0.11.2'
FABRIC_INSTALLER_URL = (
    f"https://maven.fabricmc.net/net/fabricmc/fabric-installer/{FABRIC_INSTALLER_VERSION}/"
    f"fabric-installer-{FABRIC_INSTALLER_VERSION}.jar"
)
DOWNLOAD_TIMEOUT = 60
CHUNK_SIZE = 8192


@dataclass(frozen=True)
class LoaderInstall:
    """How one loader release is installed and which version id it produces."""
    family: str
    version_id: str
    installer_url: str
    installer_args: List[str]

    @property
    def installer_name(self) -> str:
        return self.installer_url.rsplit('/', 1)[-1]


def loader_version_id(loader: str, minecraft_version: str, loader_version: str) -> str:
    if loader == 'forge':
        return f"{minecraft_version}-forge-{loader_version}"
    if loader == 'neoforge':
        return f"neoforge-{loader_version}"
    if loader == 'fabric':
        return f"fabric-loader-{loader_version}-{minecraft_version}"
    raise LauncherError(f"Unsupported mod loader: {loader}")


def plan_install(instance: Instance, root: pathlib.Path) -> Optional[LoaderInstall]:
    """The install to run for ``instance``, or None for a vanilla instance."""
    if not instance.loader or not instance.loader_version:
        return None
    mc, version = instance.minecraft_version, instance.loader_version
    version_id = loader_version_id(instance.loader, mc, version)

    if instance.loader == 'forge':
        url = f"{FORGE_MAVEN}/{mc}-{version}/forge-{mc}-{version}-installer.jar"
        args = ['--installClient', str(root)]
    elif instance.loader == 'neoforge':
        url = f"{NEOFORGE_MAVEN}/{version}/neoforge-{version}-installer.jar"
        args = ['--installClient', str(root)]
    else:
        url = FABRIC_INSTALLER_URL
        args = ['client', '-dir', str(root), '-mcversion', mc, '-loader', version]
    return LoaderInstall(family=instance.loader, version_id=version_id, installer_url=url, installer_args=args)


def download_installer(url: str, dest_path: pathlib.Path):
    """Blocking streamed download; run it in an executor."""
    log.info(f"Downloading installer from {url}...")
    try:
        response = requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT, headers={'User-Agent': USER_AGENT})
    except requests.RequestException as e:
        raise NetworkFailure(f"Failed to download installer {url}: {e}") from e

    with response:
        if response.status_code != 200:
            raise HttpStatusFailure(f"HTTP {response.status_code} while downloading installer {url}", response.status_code, url)
        try:
            with open(dest_path, 'wb') as f:
                for chunk in response.iter_content(CHUNK_SIZE):
                    f.write(chunk)
        except requests.RequestException as e:
            raise NetworkFailure(f"Failed to download installer {url}: {e}") from e
        except OSError as e:
            raise FilesystemFailure(f"Failed to write installer {dest_path}: {e}") from e
    log.info("Download complete.")


async def ensure_launcher_profiles(dirs: GameDirectories, version_id: str, ctx: Optional[LaunchContext] = None):
    """Writes a minimal launcher_profiles.json; the Forge family installers refuse to run without one."""
    username = (ctx and ctx.username) or DEFAULT_USERNAME
    uuid = (ctx and ctx.uuid) or DEFAULT_UUID
    profile_name = f"custom-{version_id}"
    auth_profile_key = uuid.replace('-', '')
    account_key = f"account-{auth_profile_key}"

    profiles_data = {
        "profiles": {
            profile_name: {
                "lastUsed": "1970-01-01T00:00:00.000Z",
                "lastVersionId": version_id,
                "name": profile_name,
                "type": "custom",
            }
        },
        "authenticationDatabase": {
            account_key: {
                "accessToken": (ctx and ctx.access_token) or DEFAULT_ACCESS_TOKEN,
                "profiles": {
                    auth_profile_key: {
                        "displayName": username,
                        "playerUUID": uuid,
                        "userId": (ctx and ctx.xuid) or DEFAULT_XUID,
                    }
                },
                "username": username,
                "properties": [],
            }
        },
        "settings": {},
        "selectedUser": {
            "account": account_key,
            "profile": auth_profile_key,
        },
        "version": 4,
    }
    try:
        await aiofiles.os.makedirs(dirs.launcher_profiles.parent, exist_ok=True)
        async with aiofiles.open(dirs.launcher_profiles, 'w', encoding='utf-8') as f:
            await f.write(json.dumps(profiles_data, indent=2))
    except OSError as e:
        raise FilesystemFailure(f"Could not write launcher profiles file {dirs.launcher_profiles}: {e}") from e
    log.info(f"Created/updated {dirs.launcher_profiles}")


async def run_installer(java_executable: str, installer_path: pathlib.Path, args: List[str], cwd: pathlib.Path) -> int:
    command = [java_executable, '-jar', str(installer_path), *args]
    log.info(f"Running installer: {' '.join(command)}")
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
        )
    except OSError as e:
        raise InstallerFailed(f"Failed to run installer {installer_path.name}: {e}") from e

    stdout, stderr = await process.communicate()
    if stdout: log.debug("Installer output:\n" + stdout.decode(errors='ignore'))
    if stderr: log.debug("Installer errors:\n" + stderr.decode(errors='ignore'))
    return process.returncode


async def install_loader(
    dirs: GameDirectories,
    instance: Instance,
    java_executable: str,
    ctx: Optional[LaunchContext] = None,
) -> Optional[str]:
    """
    Installs the instance's mod loader unless it is already installed.

    Returns the loader's version id, or None for a vanilla instance.
    """
    plan = plan_install(instance, dirs.root)
    if plan is None:
        return None

    loader_json = dirs.version_json(plan.version_id)
    if await file_exists(loader_json):
        log.info(f"{plan.family} {instance.loader_version} is already installed ({plan.version_id}).")
        return plan.version_id

    if plan.family in ('forge', 'neoforge'):
        await ensure_launcher_profiles(dirs, plan.version_id, ctx)

    log.info(f"Installing {plan.family} {instance.loader_version} for Minecraft {instance.minecraft_version}...")
    loop = asyncio.get_running_loop()
    with tempfile.TemporaryDirectory(prefix='mcinstance-installer-') as tmp_dir:
        installer_path = pathlib.Path(tmp_dir) / plan.installer_name
        await loop.run_in_executor(None, download_installer, plan.installer_url, installer_path)
        returncode = await run_installer(java_executable, installer_path, plan.installer_args, dirs.root)

    if returncode != 0:
        raise InstallerFailed(f"{plan.family} installer failed with exit code {returncode}", returncode)
    if not await file_exists(loader_json):
        raise InstallerFailed(f"{plan.family} installer finished but {loader_json} was not created", returncode)
    log.info(f"{plan.family} installed as {plan.version_id}.")
    return plan.version_id

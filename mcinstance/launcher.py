import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

from .assets import RESOURCES_URL, ensure_assets
from .command import Invocation, build_command, spawn
from .config import LauncherConfig, UserConfig, build_launch_context
from .environment import PlatformContext
from .http import create_session
from .installer import install_loader
from .java import download_java, java_runtime_dir, required_java_version
from .libraries import ensure_libraries
from .models import GameDirectories, VersionDetails
from .mods import ensure_mods
from .natives import ensure_natives
from .resolver import VERSION_MANIFEST_URL, resolve, resolve_launch_version

log = logging.getLogger(__name__)


@dataclass
class LaunchResult:
    version_id: str
    invocation: Invocation
    pid: Optional[int] = None


async def provision_version(
    session: aiohttp.ClientSession,
    dirs: GameDirectories,
    version_id: str,
    platform: PlatformContext,
    manifest_url: str = VERSION_MANIFEST_URL,
    resources_url: str = RESOURCES_URL,
) -> VersionDetails:
    """Version document, client jar, libraries and assets of a vanilla version."""
    details = await resolve(session, dirs, version_id, manifest_url)
    await ensure_libraries(session, dirs, details, platform)
    await ensure_assets(session, dirs, details, resources_url)
    return details


async def select_java(
    session: aiohttp.ClientSession,
    config: LauncherConfig,
    platform: PlatformContext,
    details: VersionDetails,
) -> str:
    if config.java_path:
        log.info(f"Using configured Java: {config.java_path}")
        return config.java_path
    version = required_java_version(config.instance.minecraft_version, details.java_major)
    return await download_java(session, version, java_runtime_dir(config.basepath, version), platform)


async def launch(
    config: LauncherConfig,
    user: UserConfig,
    platform: Optional[PlatformContext] = None,
    dry_run: bool = False,
) -> LaunchResult:
    """
    Provisions the configured instance and starts the game.

    With ``dry_run`` everything is downloaded and the command is built, but
    no process is started.
    """
    platform = platform or PlatformContext.detect()
    dirs = config.directories
    instance = config.instance
    log.info(f"Preparing instance {instance.id} (Minecraft {instance.minecraft_version}) in {dirs.root}")

    async with create_session() as session:
        details = await provision_version(
            session, dirs, instance.minecraft_version, platform, config.manifest_url, config.resources_url,
        )
        java_executable = await select_java(session, config, platform, details)
        ctx = build_launch_context(config, user, platform, java_executable)

        version_id = instance.minecraft_version
        loader_id = await install_loader(dirs, instance, java_executable, ctx)
        if loader_id:
            details = await resolve_launch_version(session, dirs, loader_id, config.manifest_url)
            await ensure_libraries(session, dirs, details, platform)
            version_id = loader_id

        await ensure_mods(session, instance, ctx.game_dir)

    await ensure_natives(dirs, details, ctx.game_dir, platform)
    invocation = build_command(ctx, dirs, details)
    log.debug(f"Launch command: {invocation.redacted(ctx.access_token)}")

    if dry_run:
        log.info("Dry run, not starting the game.")
        return LaunchResult(version_id=version_id, invocation=invocation)

    log.info("Attempting to launch Minecraft...")
    pid = spawn(invocation)
    return LaunchResult(version_id=version_id, invocation=invocation, pid=pid)

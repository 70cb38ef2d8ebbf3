import logging
from typing import Dict

from . import __version__
from .models import GameDirectories, LaunchContext, VersionDetails

log = logging.getLogger(__name__)

LAUNCHER_NAME = 'mcinstance'
LAUNCHER_VERSION = __version__

# Values used when the launch context leaves an identity field unset.
DEFAULT_USERNAME = 'Player'
DEFAULT_UUID = '00000000-0000-0000-0000-000000000000'
DEFAULT_ACCESS_TOKEN = 'token'
DEFAULT_CLIENT_ID = 'clientid'
DEFAULT_XUID = 'xuid'
DEFAULT_USER_TYPE = 'msa'
DEFAULT_VERSION_TYPE = 'release'
DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720


def replace_text(value: str, replacements: dict) -> str:
    """
    Substitutes every key of ``replacements`` found in ``value``.

    Plain substring replacement, applied key by key in dictionary order.
    Tokens without a replacement are left as they are. Non-string input
    is returned unchanged.
    """
    if not isinstance(value, str):
        log.warning("replace_text: Input 'value' is not a string. Returning original value.")
        return value

    if not isinstance(replacements, dict):
        log.warning("replace_text: Input 'replacements' is not a valid dictionary. Returning original value.")
        return value

    modified_value = value
    for search_string, replace_string in replacements.items():
        if isinstance(search_string, str) and isinstance(replace_string, str):
            modified_value = modified_value.replace(search_string, replace_string)
        else:
            log.warning(f"replace_text: Skipping replacement for key '{search_string}' as either key or value is not a string.")

    return modified_value


def launch_replacements(
    ctx: LaunchContext,
    dirs: GameDirectories,
    details: VersionDetails,
    classpath: str = '',
) -> Dict[str, str]:
    """The ``${...}`` tokens of argument templates and their values for one launch."""
    asset_index_name = details.asset_index.id if details.asset_index else (details.assets or details.id)
    width = ctx.width if ctx.width is not None else DEFAULT_WIDTH
    height = ctx.height if ctx.height is not None else DEFAULT_HEIGHT
    return {
        '${auth_player_name}': ctx.username or DEFAULT_USERNAME,
        '${version_name}': details.id,
        '${game_directory}': str(ctx.game_dir),
        '${assets_root}': str(dirs.assets),
        '${assets_index_name}': asset_index_name,
        '${auth_uuid}': ctx.uuid or DEFAULT_UUID,
        '${auth_access_token}': ctx.access_token or DEFAULT_ACCESS_TOKEN,
        '${clientid}': DEFAULT_CLIENT_ID,
        '${auth_xuid}': ctx.xuid or DEFAULT_XUID,
        '${user_type}': DEFAULT_USER_TYPE,
        '${version_type}': details.type or DEFAULT_VERSION_TYPE,
        '${resolution_width}': str(width),
        '${resolution_height}': str(height),
        '${natives_directory}': str(ctx.natives_dir),
        '${library_directory}': str(dirs.libraries),
        '${classpath_separator}': ctx.platform.classpath_separator,
        '${classpath}': classpath,
        '${launcher_name}': LAUNCHER_NAME,
        '${launcher_version}': LAUNCHER_VERSION,
    }

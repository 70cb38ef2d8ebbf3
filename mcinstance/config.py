"""Loading of the launcher's JSON configuration files.

``launcher_config.json`` describes where the game lives and what to run;
``config.json`` optionally holds the player identity; ``tokens.json``
optionally holds stored access tokens. String values of the launcher config
may use ``:thisdir:`` for the directory containing the file.
"""
import json
import logging
import pathlib
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .assets import RESOURCES_URL
from .auth import TokenStore
from .environment import PlatformContext
from .errors import ParseFailure
from .models import GameDirectories, Instance, LaunchContext
from .replacer import replace_text
from .resolver import VERSION_MANIFEST_URL

log = logging.getLogger(__name__)

LAUNCHER_CONFIG_FILE = 'launcher_config.json'
USER_CONFIG_FILE = 'config.json'
TOKENS_FILE = 'tokens.json'

DEFAULT_BASE_DIR = '.mc_launcher_data'
DEFAULT_MINECRAFT_DIR = '.minecraft'
DEFAULT_MAX_MEMORY = 4096
DEFAULT_MIN_MEMORY = 2048
DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720


@dataclass
class LauncherConfig:
    config_dir: pathlib.Path
    basepath: pathlib.Path
    minecraft_dir: pathlib.Path
    game_dir: pathlib.Path
    instance: Instance
    java_path: Optional[str] = None
    max_memory: int = DEFAULT_MAX_MEMORY
    min_memory: int = DEFAULT_MIN_MEMORY
    width: int = DEFAULT_WIDTH
    height: int = DEFAULT_HEIGHT
    manifest_url: str = VERSION_MANIFEST_URL
    resources_url: str = RESOURCES_URL

    @property
    def directories(self) -> GameDirectories:
        return GameDirectories(self.minecraft_dir)

    def with_version(self, minecraft_version: str) -> "LauncherConfig":
        """A copy running ``minecraft_version`` instead of the configured one."""
        return replace(self, instance=replace(self.instance, minecraft_version=minecraft_version))


@dataclass
class UserConfig:
    username: Optional[str] = None
    uuid: Optional[str] = None
    access_token: Optional[str] = None
    xuid: Optional[str] = None


def _int_setting(config: Dict[str, Any], key: str, default: int) -> int:
    value = config.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ParseFailure(f"Invalid value for '{key}' in {LAUNCHER_CONFIG_FILE}: {value!r}") from e


def _parse_instance(config: Dict[str, Any]) -> Instance:
    raw_instance = config.get('instance')
    if isinstance(raw_instance, dict):
        return Instance.from_dict(raw_instance)
    version = config.get('version')
    if isinstance(version, str) and version:
        return Instance(id=version, minecraft_version=version)
    raise ParseFailure(f"{LAUNCHER_CONFIG_FILE} must define an 'instance' or a 'version'")


def _substitute_thisdir(value: Any, replacements: Dict[str, str]) -> Any:
    if isinstance(value, str):
        return replace_text(value, replacements)
    if isinstance(value, dict):
        return {key: _substitute_thisdir(item, replacements) for key, item in value.items()}
    if isinstance(value, list):
        return [_substitute_thisdir(item, replacements) for item in value]
    return value


def load_launcher_config(path: pathlib.Path) -> LauncherConfig:
    path = pathlib.Path(path)
    config_dir = path.parent.resolve()
    try:
        with open(path, 'r', encoding='utf-8') as f:
            raw_config = json.load(f)
    except FileNotFoundError as e:
        raise ParseFailure(f"{path} not found") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ParseFailure(f"Error parsing {path}: {e}") from e
    if not isinstance(raw_config, dict):
        raise ParseFailure(f"{path} must contain a JSON object")

    config = _substitute_thisdir(raw_config, {':thisdir:': str(config_dir)})

    basepath = pathlib.Path(config.get('basepath') or pathlib.Path.cwd() / DEFAULT_BASE_DIR)
    minecraft_dir = basepath / config.get('path', DEFAULT_MINECRAFT_DIR)
    game_dir = pathlib.Path(config['gameDirectory']) if config.get('gameDirectory') else minecraft_dir

    return LauncherConfig(
        config_dir=config_dir,
        basepath=basepath,
        minecraft_dir=minecraft_dir,
        game_dir=game_dir,
        instance=_parse_instance(config),
        java_path=config.get('javaPath') or None,
        max_memory=_int_setting(config, 'maxMemory', DEFAULT_MAX_MEMORY),
        min_memory=_int_setting(config, 'minMemory', DEFAULT_MIN_MEMORY),
        width=_int_setting(config, 'width', DEFAULT_WIDTH),
        height=_int_setting(config, 'height', DEFAULT_HEIGHT),
        manifest_url=config.get('manifestUrl') or VERSION_MANIFEST_URL,
        resources_url=config.get('resourcesUrl') or RESOURCES_URL,
    )


def load_user_config(path: pathlib.Path) -> UserConfig:
    """Reads the optional player identity. Problems are logged and defaults used."""
    path = pathlib.Path(path)
    cfg = {}
    try:
        if path.exists():
            with open(path, 'r', encoding='utf-8') as f:
                cfg = json.load(f)
    except json.JSONDecodeError as e:
        log.warning(f"Could not parse {path.name}: {e}. Using defaults.")
    except OSError as e:
        log.warning(f"Could not read {path.name}: {e}. Using defaults.")
    if not isinstance(cfg, dict):
        log.warning(f"{path.name} does not contain a JSON object. Using defaults.")
        cfg = {}

    return UserConfig(
        username=cfg.get('auth_player_name') or None,
        uuid=cfg.get('auth_uuid') or None,
        access_token=cfg.get('auth_access_token') or None,
        xuid=cfg.get('auth_xuid') or None,
    )


def apply_stored_token(user: UserConfig, store: TokenStore) -> UserConfig:
    """Fills the identity from the token stored for ``user.uuid``, if still valid."""
    if not user.uuid:
        return user
    token = store.lookup(user.uuid)
    if token is None:
        return user
    log.info(f"Using stored token for {token.name}")
    return replace(user, username=token.name, uuid=token.uuid, access_token=token.access_token)


def build_launch_context(
    config: LauncherConfig,
    user: UserConfig,
    platform: PlatformContext,
    java_path: Optional[str] = None,
) -> LaunchContext:
    return LaunchContext(
        instance=config.instance,
        game_dir=config.game_dir,
        platform=platform,
        username=user.username,
        uuid=user.uuid,
        access_token=user.access_token,
        xuid=user.xuid,
        java_path=java_path or config.java_path,
        min_memory=config.min_memory,
        max_memory=config.max_memory,
        width=config.width,
        height=config.height,
    )


def load_user(config_dir: pathlib.Path) -> UserConfig:
    """Identity from ``config.json`` next to the launcher config, completed from ``tokens.json``."""
    config_dir = pathlib.Path(config_dir)
    user = load_user_config(config_dir / USER_CONFIG_FILE)
    return apply_stored_token(user, TokenStore(config_dir / TOKENS_FILE))

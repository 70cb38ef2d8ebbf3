import argparse
import asyncio
import logging
import pathlib
import sys

from .config import LAUNCHER_CONFIG_FILE, load_launcher_config, load_user
from .errors import LauncherError
from .launcher import launch

log = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog='mcinstance', description='Provision and launch a Minecraft instance.')
    parser.add_argument('--config', type=pathlib.Path, default=pathlib.Path(LAUNCHER_CONFIG_FILE),
                        help=f"path to {LAUNCHER_CONFIG_FILE} (default: ./{LAUNCHER_CONFIG_FILE})")
    parser.add_argument('--version', dest='minecraft_version',
                        help='Minecraft version to run instead of the configured one')
    parser.add_argument('--dry-run', action='store_true',
                        help='download everything and print the command without starting the game')
    parser.add_argument('--verbose', action='store_true', help='enable debug logging')
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> int:
    config = load_launcher_config(args.config)
    if args.minecraft_version:
        config = config.with_version(args.minecraft_version)
    user = load_user(config.config_dir)

    result = await launch(config, user, dry_run=args.dry_run)
    if args.dry_run:
        print(result.invocation.redacted(user.access_token))
    return 0


def run(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
    )
    try:
        code = asyncio.run(main(args))
    except LauncherError as e:
        log.error(str(e))
        code = 1
    except KeyboardInterrupt:
        log.info("Launch cancelled by user.")
        code = 130
    except Exception:
        log.exception("--- An error occurred during setup or launch ---")
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    run()

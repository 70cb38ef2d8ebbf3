import logging
import pathlib
import subprocess
import sys
from dataclasses import dataclass
from typing import Dict, List, Optional

from .environment import PlatformContext
from .errors import LauncherError
from .models import Argument, ConditionalArgument, GameDirectories, LaunchContext, LiteralArgument, VersionDetails
from .replacer import launch_replacements, replace_text
from .rules import applies

log = logging.getLogger(__name__)

# JVM flags only understood on macOS.
MACOS_ONLY_JVM_ARGS = ('-XstartOnFirstThread',)


@dataclass
class Invocation:
    """A process to start: the executable, its ordered arguments and working directory."""
    executable: str
    args: List[str]
    cwd: pathlib.Path

    @property
    def argv(self) -> List[str]:
        return [self.executable, *self.args]

    def redacted(self, *secrets: Optional[str]) -> str:
        """The command line with ``secrets`` masked, for logging."""
        line = ' '.join(self.argv)
        for secret in secrets:
            if secret:
                line = line.replace(secret, '********')
        return line


def default_java(ctx: PlatformContext) -> str:
    return 'javaw.exe' if ctx.is_windows else 'java'


def skip_jvm_argument(arg: str, ctx: PlatformContext) -> bool:
    return ctx.os_name != 'osx' and arg in MACOS_ONLY_JVM_ARGS


def expand_arguments(
    arguments: List[Argument],
    ctx: PlatformContext,
    replacements: Dict[str, str],
    jvm: bool = False,
) -> List[str]:
    """Turns argument templates into final arguments, keeping their order.

    Literal entries always pass; conditional entries pass when their rules
    apply, contributing each of their values.
    """
    expanded = []
    for arg in arguments:
        if isinstance(arg, LiteralArgument):
            values = [arg.value]
        elif isinstance(arg, ConditionalArgument):
            if not applies(arg.rules, ctx):
                log.debug(f"Skipping argument due to rules: {arg.values}")
                continue
            values = arg.values
        else:
            raise TypeError(f"Unsupported argument type: {type(arg).__name__}")

        for value in values:
            if jvm and skip_jvm_argument(value, ctx):
                continue
            expanded.append(replace_text(value, replacements))
    return expanded


def classpath_entries(dirs: GameDirectories, details: VersionDetails, ctx: PlatformContext) -> List[str]:
    """Client jar first, then every present rule-passing library in manifest order."""
    entries = [str(dirs.version_jar(details.jar_id))]
    for lib in details.libraries:
        if not applies(lib.rules, ctx):
            continue
        if lib.artifact is None or not lib.artifact.path:
            continue
        lib_path = dirs.library(lib.artifact.path)
        if lib_path.is_file():
            entries.append(str(lib_path))
        else:
            log.warning(f"Library not found, leaving it off the classpath: {lib_path}")
    # Loader and base versions may list the same file twice.
    return list(dict.fromkeys(entries))


def join_classpath(entries: List[str], ctx: PlatformContext) -> str:
    return ctx.classpath_separator.join(entries)


def jvm_arguments(
    ctx: LaunchContext,
    dirs: GameDirectories,
    details: VersionDetails,
    classpath: str,
    replacements: Dict[str, str],
) -> List[str]:
    args = []
    if ctx.max_memory:
        args.append(f"-Xmx{ctx.max_memory}M")
    if ctx.min_memory:
        args.append(f"-Xms{ctx.min_memory}M")
    if details.arguments is not None:
        args.extend(expand_arguments(details.arguments.jvm, ctx.platform, replacements, jvm=True))
    separator = ctx.platform.classpath_separator
    args.append(f"-Djava.library.path={dirs.libraries}{separator}{ctx.natives_dir}")
    args.extend(['-cp', classpath])
    return args


def game_arguments(ctx: LaunchContext, details: VersionDetails, replacements: Dict[str, str]) -> List[str]:
    if details.arguments is not None and details.arguments.game:
        return expand_arguments(details.arguments.game, ctx.platform, replacements)
    if details.minecraft_arguments:
        # Legacy whitespace separated template.
        return [replace_text(token, replacements) for token in details.minecraft_arguments.split()]
    return []


def build_command(ctx: LaunchContext, dirs: GameDirectories, details: VersionDetails) -> Invocation:
    log.info('Constructing launch command...')
    entries = classpath_entries(dirs, details, ctx.platform)
    classpath = join_classpath(entries, ctx.platform)
    log.info(f"Total libraries in classpath: {len(entries) - 1}")

    replacements = launch_replacements(ctx, dirs, details, classpath)
    args = [
        *jvm_arguments(ctx, dirs, details, classpath, replacements),
        details.main_class,
        *game_arguments(ctx, details, replacements),
    ]
    return Invocation(executable=ctx.java_path or default_java(ctx.platform), args=args, cwd=ctx.game_dir)


def spawn(invocation: Invocation) -> int:
    """
    Starts the game detached from this process and returns its pid.

    The process is not waited on, monitored or cleaned up.
    """
    kwargs = {}
    if sys.platform == 'win32':
        kwargs['creationflags'] = subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
    else:
        kwargs['start_new_session'] = True
    try:
        process = subprocess.Popen(invocation.argv, cwd=str(invocation.cwd), stdin=subprocess.DEVNULL, **kwargs)
    except OSError as e:
        raise LauncherError(f"Failed to launch Minecraft: {e}") from e
    log.info(f"Minecraft process started (PID: {process.pid}).")
    return process.pid

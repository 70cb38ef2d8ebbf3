import logging
import platform
from dataclasses import dataclass

log = logging.getLogger(__name__)


def get_os_name() -> str:
    """Gets the current OS name ('windows', 'osx', 'linux').

    Other systems are returned lowercased as reported by the interpreter,
    they simply never match an OS rule.
    """
    system = platform.system()
    if system == 'Windows': return 'windows'
    elif system == 'Darwin': return 'osx'
    elif system == 'Linux': return 'linux'
    else:
        log.warning(f"Unsupported platform: {system}. OS rules will not match.")
        return system.lower()


def get_arch_name() -> str:
    """Gets the current architecture name ('x64', 'x86', 'arm64', 'arm32')."""
    machine = platform.machine().lower()
    if machine in ['amd64', 'x86_64']: return 'x64'
    elif machine in ['i386', 'i686', 'x86']: return 'x86'
    elif machine in ['arm64', 'aarch64']: return 'arm64'
    elif machine.startswith('arm') and '64' not in machine: return 'arm32'
    else:
        log.warning(f"Unsupported architecture: {platform.machine()}. Arch rules will not match.")
        return machine


@dataclass(frozen=True)
class PlatformContext:
    """The platform a launch targets, resolved once and passed explicitly."""
    os_name: str
    arch: str

    @classmethod
    def detect(cls) -> "PlatformContext":
        ctx = cls(os_name=get_os_name(), arch=get_arch_name())
        log.info(f"Detected OS: {ctx.os_name}, Arch: {ctx.arch}")
        return ctx

    @property
    def is_windows(self) -> bool:
        return self.os_name == 'windows'

    @property
    def classpath_separator(self) -> str:
        # ';' for Windows, ':' for Linux/macOS
        return ';' if self.is_windows else ':'

    @property
    def arch_bits(self) -> str:
        """Value substituted for ``${arch}`` in native classifier names."""
        return '32' if self.arch in ('x86', 'arm32') else '64'

"""Typed views over the version manifest, version documents and launch inputs.

Version documents are plain JSON. They are parsed into the dataclasses below
as soon as they are read, so the rest of the package never looks at raw
dictionaries. The raw document is kept on ``VersionDetails.raw`` because the
resolver persists it verbatim.
"""
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from .environment import PlatformContext
from .errors import ParseFailure

log = logging.getLogger(__name__)


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(data, dict):
        raise ParseFailure(f"Expected an object for {where}, got {type(data).__name__}")
    if data.get(key) is None:
        raise ParseFailure(f"Missing required field '{key}' in {where}")
    return data[key]


def maven_path(name: str) -> str:
    """Standard repository path of a maven specifier.

    ``com.foo.bar:artifact:version[:classifier][@ext]`` gives
    ``com/foo/bar/artifact/version/artifact-version[-classifier].ext``.
    """
    ext = 'jar'
    if '@' in name:
        name, ext = name.split('@', 1)
    parts = name.split(':')
    if len(parts) < 3:
        raise ParseFailure(f"Invalid library specifier: {name}")
    group, artifact, version = parts[0], parts[1], parts[2]
    classifier = f"-{parts[3]}" if len(parts) > 3 else ''
    file_name = f"{artifact}-{version}{classifier}.{ext}"
    return '/'.join([*group.split('.'), artifact, version, file_name])


# --- Version Manifest ---

@dataclass(frozen=True)
class ManifestEntry:
    id: str
    type: str
    url: str
    time: Optional[str] = None
    release_time: Optional[str] = None


@dataclass
class VersionManifest:
    latest: Dict[str, str]
    versions: List[ManifestEntry]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionManifest":
        entries = []
        for raw in _require(data, 'versions', 'version manifest'):
            entries.append(ManifestEntry(
                id=_require(raw, 'id', 'version manifest entry'),
                type=raw.get('type', 'release'),
                url=_require(raw, 'url', 'version manifest entry'),
                time=raw.get('time'),
                release_time=raw.get('releaseTime'),
            ))
        return cls(latest=dict(data.get('latest') or {}), versions=entries)

    def find(self, version_id: str) -> Optional[ManifestEntry]:
        for entry in self.versions:
            if entry.id == version_id:
                return entry
        return None


# --- Rules ---

@dataclass(frozen=True)
class OsRule:
    name: Optional[str] = None
    arch: Optional[str] = None
    version: Optional[str] = None


@dataclass(frozen=True)
class Rule:
    action: str
    os: Optional[OsRule] = None
    features: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        os_rule = None
        if isinstance(data.get('os'), dict):
            raw_os = data['os']
            os_rule = OsRule(name=raw_os.get('name'), arch=raw_os.get('arch'), version=raw_os.get('version'))
        features = data.get('features') or {}
        if not isinstance(features, dict):
            raise ParseFailure(f"Rule features must be an object, got {features!r}")
        return cls(action=_require(data, 'action', 'rule'), os=os_rule, features=dict(features))


def parse_rules(raw: Optional[List[Dict[str, Any]]]) -> List[Rule]:
    if not raw:
        return []
    return [Rule.from_dict(rule) for rule in raw]


# --- Arguments ---

@dataclass(frozen=True)
class LiteralArgument:
    value: str


@dataclass(frozen=True)
class ConditionalArgument:
    rules: List[Rule]
    values: List[str]


Argument = Union[LiteralArgument, ConditionalArgument]


def parse_argument(entry: Any) -> Argument:
    if isinstance(entry, str):
        return LiteralArgument(entry)
    if isinstance(entry, dict):
        value = entry.get('value')
        if isinstance(value, str):
            values = [value]
        elif isinstance(value, list) and all(isinstance(v, str) for v in value):
            values = list(value)
        else:
            raise ParseFailure(f"Unsupported argument value: {value!r}")
        return ConditionalArgument(rules=parse_rules(entry.get('rules')), values=values)
    raise ParseFailure(f"Unsupported argument format: {entry!r}")


@dataclass
class Arguments:
    game: List[Argument] = field(default_factory=list)
    jvm: List[Argument] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Arguments":
        return cls(
            game=[parse_argument(a) for a in data.get('game') or []],
            jvm=[parse_argument(a) for a in data.get('jvm') or []],
        )


# --- Libraries ---

@dataclass(frozen=True)
class Artifact:
    url: str
    path: Optional[str] = None
    size: int = 0
    sha1: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], where: str) -> "Artifact":
        if not isinstance(data, dict) or 'url' not in data:
            raise ParseFailure(f"Missing required field 'url' in {where}")
        return cls(url=data['url'] or '', path=data.get('path'), size=data.get('size') or 0, sha1=data.get('sha1'))


@dataclass
class Library:
    name: str
    artifact: Optional[Artifact] = None
    classifiers: Dict[str, Artifact] = field(default_factory=dict)
    rules: List[Rule] = field(default_factory=list)
    natives: Dict[str, str] = field(default_factory=dict)
    extract_exclude: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Library":
        name = _require(data, 'name', 'library')
        where = f"library {name}"
        artifact = None
        classifiers = {}
        downloads = data.get('downloads')
        if isinstance(downloads, dict):
            if downloads.get('artifact') is not None:
                artifact = Artifact.from_dict(downloads['artifact'], f"{where} artifact")
            for key, raw in (downloads.get('classifiers') or {}).items():
                classifiers[key] = Artifact.from_dict(raw, f"{where} classifier {key}")
        elif downloads is None and 'natives' not in data:
            # Loader documents only give the maven coordinates and a repository.
            path = maven_path(name)
            base_url = data.get('url')
            url = f"{base_url.rstrip('/')}/{path}" if base_url else ''
            artifact = Artifact(url=url, path=path)
        extract = data.get('extract') or {}
        return cls(
            name=name,
            artifact=artifact,
            classifiers=classifiers,
            rules=parse_rules(data.get('rules')),
            natives=dict(data.get('natives') or {}),
            extract_exclude=list(extract.get('exclude') or []),
        )


# --- Assets ---

@dataclass(frozen=True)
class AssetIndexRef:
    id: str
    url: str
    total_size: int = 0


@dataclass(frozen=True)
class AssetObject:
    name: str
    hash: str
    size: int = 0

    @property
    def relative_path(self) -> str:
        return f"{self.hash[:2]}/{self.hash}"


def parse_asset_index(data: Dict[str, Any]) -> List[AssetObject]:
    objects = data.get('objects') if isinstance(data, dict) else None
    if not isinstance(objects, dict):
        raise ParseFailure("Invalid asset index format")
    result = []
    for name, obj in objects.items():
        asset_hash = _require(obj, 'hash', f"asset object {name}")
        if not isinstance(asset_hash, str) or len(asset_hash) < 2:
            raise ParseFailure(f"Invalid hash for asset object {name}: {asset_hash!r}")
        result.append(AssetObject(name=name, hash=asset_hash, size=obj.get('size') or 0))
    return result


# --- Version Details ---

@dataclass
class VersionDetails:
    id: str
    type: str
    main_class: str
    libraries: List[Library]
    client: Optional[Artifact]
    asset_index: Optional[AssetIndexRef]
    arguments: Optional[Arguments] = None
    minecraft_arguments: Optional[str] = None
    assets: Optional[str] = None
    release_time: Optional[str] = None
    time: Optional[str] = None
    inherits_from: Optional[str] = None
    java_major: Optional[int] = None
    jar: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def jar_id(self) -> str:
        """Id of the version whose client jar goes on the classpath."""
        return self.jar or self.id

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionDetails":
        version_id = _require(data, 'id', 'version details')
        where = f"version {version_id}"
        inherits_from = data.get('inheritsFrom')
        # Documents inheriting from another version get downloads and the
        # asset index from their parent once merged.
        lenient = inherits_from is not None

        client = None
        downloads = data.get('downloads')
        if downloads is not None or not lenient:
            client = Artifact.from_dict(_require(downloads or {}, 'client', f"{where} downloads"), f"{where} client")

        asset_index = None
        raw_index = data.get('assetIndex')
        if raw_index is not None or not lenient:
            raw_index = _require(data, 'assetIndex', where)
            asset_index = AssetIndexRef(
                id=_require(raw_index, 'id', f"{where} assetIndex"),
                url=_require(raw_index, 'url', f"{where} assetIndex"),
                total_size=raw_index.get('totalSize') or 0,
            )

        raw_libraries = _require(data, 'libraries', where) if not lenient else data.get('libraries') or []
        arguments = Arguments.from_dict(data['arguments']) if isinstance(data.get('arguments'), dict) else None
        java_version = data.get('javaVersion') or {}

        return cls(
            id=version_id,
            type=data.get('type') or 'release',
            main_class=_require(data, 'mainClass', where),
            libraries=[Library.from_dict(lib) for lib in raw_libraries],
            client=client,
            asset_index=asset_index,
            arguments=arguments,
            minecraft_arguments=data.get('minecraftArguments'),
            assets=data.get('assets'),
            release_time=data.get('releaseTime'),
            time=data.get('time'),
            inherits_from=inherits_from,
            java_major=java_version.get('majorVersion'),
            jar=data.get('jar'),
            raw=data,
        )


def merge_manifests(target_manifest: Dict[str, Any], base_manifest: Dict[str, Any]) -> Dict[str, Any]:
    """Merges two version documents (target inheriting from base)."""
    target_id = target_manifest.get('id', 'unknown-target')
    base_id = base_manifest.get('id', 'unknown-base')
    log.info(f"Merging manifests: {target_id} inheriting from {base_id}")

    # Libraries keyed by 'name' so the target overrides the base.
    combined_libraries_map = {}
    for lib in base_manifest.get('libraries', []):
        if 'name' in lib: combined_libraries_map[lib['name']] = lib
    for lib in target_manifest.get('libraries', []):
        if 'name' in lib: combined_libraries_map[lib['name']] = lib

    merged = {
        "id": target_manifest.get('id'),
        "time": target_manifest.get('time'),
        "releaseTime": target_manifest.get('releaseTime'),
        "type": target_manifest.get('type', base_manifest.get('type')),
        "mainClass": target_manifest.get('mainClass', base_manifest.get('mainClass')),
        "assetIndex": target_manifest.get('assetIndex', base_manifest.get('assetIndex')),
        "assets": target_manifest.get('assets', base_manifest.get('assets')),
        "downloads": base_manifest.get('downloads'),
        "javaVersion": target_manifest.get('javaVersion', base_manifest.get('javaVersion')),
        "libraries": list(combined_libraries_map.values()),
        "minecraftArguments": target_manifest.get('minecraftArguments', base_manifest.get('minecraftArguments')),
        "jar": base_manifest.get('jar', base_id),
    }

    # Target arguments are appended to the base ones.
    base_args = base_manifest.get('arguments') or {}
    target_args = target_manifest.get('arguments') or {}
    if base_args or target_args:
        merged["arguments"] = {
            "game": (base_args.get('game') or []) + (target_args.get('game') or []),
            "jvm": (base_args.get('jvm') or []) + (target_args.get('jvm') or []),
        }
    return {k: v for k, v in merged.items() if v is not None}


# --- Instance and launch inputs ---

LOADER_KEYS = {
    'forge': 'forgeVersion',
    'fabric': 'fabricVersion',
    'neoforge': 'neoforgeVersion',
}


@dataclass(frozen=True)
class ModFile:
    name: str
    url: str


@dataclass
class Instance:
    """A resolved modpack: one game version, at most one mod loader, its mods."""
    id: str
    minecraft_version: str
    loader: Optional[str] = None
    loader_version: Optional[str] = None
    mods: List[ModFile] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Instance":
        minecraft_version = _require(data, 'minecraftVersion', 'instance')
        loader, loader_version = None, None
        for name, key in LOADER_KEYS.items():
            if data.get(key):
                loader, loader_version = name, data[key]
                break
        mods = [
            ModFile(name=_require(m, 'name', 'mod'), url=_require(m, 'downloadUrl', 'mod'))
            for m in data.get('mods') or []
        ]
        return cls(
            id=data.get('id') or minecraft_version,
            minecraft_version=minecraft_version,
            loader=loader,
            loader_version=loader_version,
            mods=mods,
        )


@dataclass
class LaunchContext:
    instance: Instance
    game_dir: pathlib.Path
    platform: PlatformContext
    username: Optional[str] = None
    uuid: Optional[str] = None
    access_token: Optional[str] = None
    xuid: Optional[str] = None
    java_path: Optional[str] = None
    min_memory: Optional[int] = None
    max_memory: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def natives_dir(self) -> pathlib.Path:
        return self.game_dir / 'natives'


class GameDirectories:
    """The shared on-disk store every path is derived from."""

    def __init__(self, root: pathlib.Path):
        self.root = pathlib.Path(root)
        self.versions = self.root / 'versions'
        self.libraries = self.root / 'libraries'
        self.assets = self.root / 'assets'
        self.asset_indexes = self.assets / 'indexes'
        self.asset_objects = self.assets / 'objects'
        self.launcher_profiles = self.root / 'launcher_profiles.json'

    def version_dir(self, version_id: str) -> pathlib.Path:
        return self.versions / version_id

    def version_json(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / f"{version_id}.json"

    def version_jar(self, version_id: str) -> pathlib.Path:
        return self.version_dir(version_id) / f"{version_id}.jar"

    def library(self, path: str) -> pathlib.Path:
        return self.libraries / path

    def asset_index(self, index_id: str) -> pathlib.Path:
        return self.asset_indexes / f"{index_id}.json"

    def asset_object(self, asset_hash: str) -> pathlib.Path:
        return self.asset_objects / asset_hash[:2] / asset_hash

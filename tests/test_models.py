import pytest

from mcinstance.errors import ParseFailure
from mcinstance.models import (
    ConditionalArgument,
    Instance,
    Library,
    LiteralArgument,
    VersionDetails,
    VersionManifest,
    maven_path,
    merge_manifests,
    parse_argument,
    parse_asset_index,
)


@pytest.mark.parametrize("name, path", [
    ("com.mojang:brigadier:1.0.18", "com/mojang/brigadier/1.0.18/brigadier-1.0.18.jar"),
    ("org.lwjgl:lwjgl:3.3.1:natives-linux", "org/lwjgl/lwjgl/3.3.1/lwjgl-3.3.1-natives-linux.jar"),
    ("de.oceanlabs.mcp:mcp_config:1.20.1@zip", "de/oceanlabs/mcp/mcp_config/1.20.1/mcp_config-1.20.1.zip"),
])
def test_maven_path(name, path):
    assert maven_path(name) == path


def test_maven_path_rejects_short_specifier():
    with pytest.raises(ParseFailure):
        maven_path("just:two")


def test_manifest_find_is_exact():
    manifest = VersionManifest.from_dict({"versions": [
        {"id": "1.20", "type": "release", "url": "u1"},
        {"id": "1.20.1", "type": "release", "url": "u2"},
    ]})
    assert manifest.find("1.20.1").url == "u2"
    assert manifest.find("1.2") is None


def test_argument_union():
    assert parse_argument("--demo") == LiteralArgument("--demo")
    single = parse_argument({"rules": [{"action": "allow"}], "value": "-Xss1M"})
    assert isinstance(single, ConditionalArgument)
    assert single.values == ["-Xss1M"]
    with pytest.raises(ParseFailure):
        parse_argument(42)


def test_library_without_downloads_gets_maven_url():
    lib = Library.from_dict({"name": "net.fabricmc:intermediary:1.20.1", "url": "https://maven.fabricmc.net/"})
    assert lib.artifact.path == "net/fabricmc/intermediary/1.20.1/intermediary-1.20.1.jar"
    assert lib.artifact.url == "https://maven.fabricmc.net/net/fabricmc/intermediary/1.20.1/intermediary-1.20.1.jar"


def test_artifact_defaults():
    lib = Library.from_dict({"name": "a:b:1", "downloads": {"artifact": {"url": "https://x/a.jar", "path": "a.jar"}}})
    assert lib.artifact.size == 0
    assert lib.artifact.sha1 is None


def test_version_details_requires_client():
    with pytest.raises(ParseFailure):
        VersionDetails.from_dict({
            "id": "1.20.1",
            "mainClass": "Main",
            "assetIndex": {"id": "5", "url": "u"},
            "libraries": [],
        })


def test_asset_index_requires_objects():
    with pytest.raises(ParseFailure):
        parse_asset_index({"files": {}})
    objects = parse_asset_index({"objects": {"icons/icon.png": {"hash": "ab" * 20, "size": 3}}})
    assert objects[0].relative_path == f"ab/{'ab' * 20}"


def test_merge_keeps_legacy_arguments():
    base = {
        "id": "1.12.2",
        "mainClass": "net.minecraft.client.main.Main",
        "minecraftArguments": "--username ${auth_player_name}",
        "libraries": [{"name": "a:a:1"}, {"name": "b:b:1"}],
        "downloads": {"client": {"url": "c"}},
    }
    target = {
        "id": "1.12.2-forge-14.23.5.2860",
        "inheritsFrom": "1.12.2",
        "mainClass": "net.minecraft.launchwrapper.Launch",
        "minecraftArguments": "--username ${auth_player_name} --tweakClass x",
        "libraries": [{"name": "b:b:1", "url": "override"}, {"name": "c:c:1"}],
    }
    merged = merge_manifests(target, base)

    assert "arguments" not in merged
    assert merged["minecraftArguments"].endswith("--tweakClass x")
    assert merged["jar"] == "1.12.2"
    assert [lib["name"] for lib in merged["libraries"]] == ["a:a:1", "b:b:1", "c:c:1"]
    assert merged["libraries"][1]["url"] == "override"


def test_instance_from_dict():
    instance = Instance.from_dict({
        "id": "pack",
        "minecraftVersion": "1.20.1",
        "forgeVersion": "47.2.0",
        "mods": [{"name": "jei.jar", "downloadUrl": "https://x/jei.jar"}],
    })
    assert (instance.loader, instance.loader_version) == ("forge", "47.2.0")
    assert instance.mods[0].name == "jei.jar"

    vanilla = Instance.from_dict({"minecraftVersion": "1.20.1"})
    assert vanilla.id == "1.20.1"
    assert vanilla.loader is None

import json

import pytest

from mcinstance.auth import AuthToken, TokenStore
from mcinstance.config import build_launch_context, load_launcher_config, load_user, load_user_config
from mcinstance.environment import PlatformContext
from mcinstance.errors import ParseFailure


def _write(path, data):
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return path


def test_launcher_config_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = _write(tmp_path / "launcher_config.json", {"instance": {"minecraftVersion": "1.20.1"}})

    config = load_launcher_config(path)

    assert config.basepath == tmp_path / ".mc_launcher_data"
    assert config.minecraft_dir == tmp_path / ".mc_launcher_data" / ".minecraft"
    assert config.game_dir == config.minecraft_dir
    assert (config.max_memory, config.min_memory) == (4096, 2048)
    assert (config.width, config.height) == (1280, 720)
    assert config.java_path is None
    assert config.instance.minecraft_version == "1.20.1"


def test_thisdir_is_replaced(tmp_path):
    path = _write(tmp_path / "launcher_config.json", {
        "basepath": ":thisdir:/data",
        "path": "mc",
        "version": "1.12.2",
        "maxMemory": "8192",
    })

    config = load_launcher_config(path)

    assert config.minecraft_dir == tmp_path.resolve() / "data" / "mc"
    assert config.max_memory == 8192
    assert config.instance.id == "1.12.2"


def test_with_version_overrides_instance(tmp_path):
    path = _write(tmp_path / "launcher_config.json", {"instance": {"minecraftVersion": "1.20.1", "fabricVersion": "0.15.0"}})
    config = load_launcher_config(path).with_version("1.20.4")
    assert config.instance.minecraft_version == "1.20.4"
    assert config.instance.loader == "fabric"


@pytest.mark.parametrize("content", ["{not json", json.dumps({"basepath": "x"}), json.dumps([1, 2])])
def test_invalid_launcher_config(tmp_path, content):
    path = _write(tmp_path / "launcher_config.json", content)
    with pytest.raises(ParseFailure):
        load_launcher_config(path)


def test_missing_launcher_config(tmp_path):
    with pytest.raises(ParseFailure):
        load_launcher_config(tmp_path / "launcher_config.json")


def test_user_config_invalid_uses_defaults(tmp_path):
    user = load_user_config(_write(tmp_path / "config.json", "{oops"))
    assert user.username is None and user.access_token is None


def test_user_completed_from_token_store(tmp_path):
    _write(tmp_path / "config.json", {"auth_player_name": "Old", "auth_uuid": "abc"})
    store = TokenStore(tmp_path / "tokens.json")
    store.insert(AuthToken(access_token="tok", uuid="abc", name="Steve", expires_at=2 ** 40))

    user = load_user(tmp_path)

    assert (user.username, user.uuid, user.access_token) == ("Steve", "abc", "tok")


def test_launch_context_from_config(tmp_path):
    path = _write(tmp_path / "launcher_config.json", {
        "instance": {"minecraftVersion": "1.20.1"},
        "gameDirectory": str(tmp_path / "game"),
        "javaPath": "/usr/bin/java",
        "width": 800,
    })
    config = load_launcher_config(path)
    user = load_user(tmp_path)

    ctx = build_launch_context(config, user, PlatformContext('linux', 'x64'))

    assert ctx.game_dir == tmp_path / "game"
    assert ctx.natives_dir == tmp_path / "game" / "natives"
    assert ctx.java_path == "/usr/bin/java"
    assert (ctx.width, ctx.height) == (800, 720)
    assert ctx.username is None


def test_thisdir_is_replaced_inside_instance(tmp_path, caplog):
    path = _write(tmp_path / "launcher_config.json", {
        "basepath": str(tmp_path),
        "maxMemory": 6144,
        "instance": {
            "minecraftVersion": "1.20.1",
            "mods": [{"name": "local.jar", "downloadUrl": "file://:thisdir:/mods/local.jar"}],
        },
    })

    with caplog.at_level("WARNING"):
        config = load_launcher_config(path)

    assert config.max_memory == 6144
    assert config.instance.mods[0].url == f"file://{tmp_path.resolve()}/mods/local.jar"
    assert "not a string" not in caplog.text

import json

import pytest
from aiohttp import web

from mcinstance.errors import HttpStatusFailure, ParseFailure, VersionNotFound
from mcinstance.resolver import resolve, resolve_launch_version


def _version_doc(base_url, version_id="1.20.1"):
    return {
        "id": version_id,
        "type": "release",
        "mainClass": "net.minecraft.client.main.Main",
        "downloads": {"client": {"url": f"{base_url}/client.jar", "sha1": "0" * 40, "size": 6}},
        "assetIndex": {"id": "5", "url": f"{base_url}/5.json"},
        "assets": "5",
        "javaVersion": {"majorVersion": 17},
        "libraries": [{"name": "com.a:a:1", "downloads": {"artifact": {"path": "com/a/a-1.jar", "url": f"{base_url}/a.jar"}}}],
        "arguments": {"game": ["--username", "${auth_player_name}"], "jvm": ["-cp", "${classpath}"]},
    }


def _setup(http_app, doc_factory):
    """Serves a manifest listing 1.20.1 plus its document and client jar."""
    served = {}

    async def manifest(request):
        base = f"{request.scheme}://{request.host}"
        return _json_response({"latest": {"release": "1.20.1"}, "versions": [
            {"id": "1.20.1", "type": "release", "url": f"{base}/v/1.20.1.json"},
        ]})

    async def document(request):
        base = f"{request.scheme}://{request.host}"
        # Unusual spacing so verbatim persistence can be checked.
        served["bytes"] = json.dumps(doc_factory(base), indent=3).encode()
        return _response(served["bytes"])

    http_app.route("/manifest.json", manifest)
    http_app.route("/v/1.20.1.json", document)
    http_app.body("/client.jar", b"client")
    return served


def _response(body, status=200):
    return web.Response(body=body, status=status)


def _json_response(data):
    return _response(json.dumps(data).encode())


def test_resolve_fetches_and_persists(dirs, http_app, serve):
    served = _setup(http_app, _version_doc)

    async def scenario(base_url, session):
        return await resolve(session, dirs, "1.20.1", f"{base_url}/manifest.json")

    details = serve(http_app, scenario)

    assert details.id == "1.20.1"
    assert details.java_major == 17
    assert details.asset_index.id == "5"
    assert dirs.version_jar("1.20.1").read_bytes() == b"client"
    assert dirs.version_json("1.20.1").read_bytes() == served["bytes"]


def test_resolve_uses_cached_document(dirs, http_app, serve):
    _setup(http_app, _version_doc)

    async def scenario(base_url, session):
        url = f"{base_url}/manifest.json"
        await resolve(session, dirs, "1.20.1", url)
        before = http_app.total_hits
        details = await resolve(session, dirs, "1.20.1", url)
        return before, http_app.total_hits, details

    before, after, details = serve(http_app, scenario)
    assert before == after == 3
    assert details.main_class == "net.minecraft.client.main.Main"


def test_cached_document_missing_jar_refetches_jar(dirs, http_app, serve):
    _setup(http_app, _version_doc)

    async def scenario(base_url, session):
        url = f"{base_url}/manifest.json"
        await resolve(session, dirs, "1.20.1", url)
        dirs.version_jar("1.20.1").unlink()
        await resolve(session, dirs, "1.20.1", url)

    serve(http_app, scenario)
    assert http_app.hits["/client.jar"] == 2
    assert http_app.hits["/manifest.json"] == 1
    assert dirs.version_jar("1.20.1").is_file()


def test_unknown_version(dirs, http_app, serve):
    _setup(http_app, _version_doc)

    async def scenario(base_url, session):
        await resolve(session, dirs, "9.9.9", f"{base_url}/manifest.json")

    with pytest.raises(VersionNotFound) as excinfo:
        serve(http_app, scenario)
    assert excinfo.value.version_id == "9.9.9"
    assert not dirs.version_json("9.9.9").exists()


def test_missing_main_class_is_parse_failure(dirs, http_app, serve):
    def broken(base_url):
        doc = _version_doc(base_url)
        del doc["mainClass"]
        return doc

    _setup(http_app, broken)

    async def scenario(base_url, session):
        await resolve(session, dirs, "1.20.1", f"{base_url}/manifest.json")

    with pytest.raises(ParseFailure):
        serve(http_app, scenario)
    assert not dirs.version_json("1.20.1").exists()


def test_manifest_http_error(dirs, http_app, serve):
    http_app.body("/manifest.json", b"nope", status=503)

    async def scenario(base_url, session):
        await resolve(session, dirs, "1.20.1", f"{base_url}/manifest.json")

    with pytest.raises(HttpStatusFailure) as excinfo:
        serve(http_app, scenario)
    assert excinfo.value.status == 503
    # No retry on the resolver path.
    assert http_app.hits["/manifest.json"] == 1


def test_loader_version_is_merged_with_parent(dirs, http_app, serve):
    _setup(http_app, _version_doc)
    loader_id = "fabric-loader-0.15.0-1.20.1"
    loader_doc = {
        "id": loader_id,
        "inheritsFrom": "1.20.1",
        "type": "release",
        "mainClass": "net.fabricmc.loader.impl.launch.knot.KnotClient",
        "libraries": [{"name": "net.fabricmc:fabric-loader:0.15.0", "url": "https://maven.fabricmc.net/"}],
        "arguments": {"game": [], "jvm": ["-DFabricMcEmu= net.minecraft.client.main.Main "]},
    }
    dirs.version_json(loader_id).parent.mkdir(parents=True)
    dirs.version_json(loader_id).write_text(json.dumps(loader_doc))

    async def scenario(base_url, session):
        return await resolve_launch_version(session, dirs, loader_id, f"{base_url}/manifest.json")

    details = serve(http_app, scenario)

    assert details.id == loader_id
    assert details.main_class == "net.fabricmc.loader.impl.launch.knot.KnotClient"
    assert details.jar_id == "1.20.1"
    assert details.asset_index.id == "5"
    assert [lib.name for lib in details.libraries] == ["com.a:a:1", "net.fabricmc:fabric-loader:0.15.0"]
    assert details.libraries[1].artifact.url == (
        "https://maven.fabricmc.net/net/fabricmc/fabric-loader/0.15.0/fabric-loader-0.15.0.jar"
    )
    assert len(details.arguments.jvm) == 3

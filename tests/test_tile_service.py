import asyncio
import httpx
import pytest

from kartproxy.core.errors import UpstreamError
from kartproxy.services.tile_service import TileProxy
from kartproxy.services.token_service import TokenCache
from conftest import Upstream, run

TILE_QUERY = "layer=topowebb&style=default&tilematrixset=3857&Service=WMTS&Request=GetTile&Version=1.0.0&Format=image%2Fpng&TileMatrix=5&TileCol=17&TileRow=9"


def make_proxy(settings, clock, tile_responses):
    token_counter = {"n": 0}

    def issue_token(request):
        token_counter["n"] += 1
        return httpx.Response(200, json={"access_token": f"tok-{token_counter['n']}", "expires_in": 3600})

    token_upstream = Upstream(issue_token)
    tile_upstream = Upstream(tile_responses)
    tokens = TokenCache(settings, transport=token_upstream.transport, clock=clock)
    return TileProxy(settings, tokens, transport=tile_upstream.transport), tokens, tile_upstream


def test_tile_is_forwarded_with_bearer_token(settings, clock):
    proxy, tokens, tiles = make_proxy(settings, clock, [
        httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"}),
    ])

    tile = run(proxy.proxy_tile(TILE_QUERY))

    assert tile.content == b"\x89PNG"
    assert tile.content_type == "image/png"
    request = tiles.requests[0]
    assert request.headers["Authorization"] == "Bearer tok-1"
    assert str(request.url) == f"{settings.LM_WMTS_URL}?{TILE_QUERY}"


def test_401_then_200_refreshes_token_once(settings, clock):
    proxy, tokens, tiles = make_proxy(settings, clock, [
        httpx.Response(401),
        httpx.Response(200, content=b"tile", headers={"content-type": "image/png"}),
    ])
    run(tokens.get_token())

    tile = run(proxy.proxy_tile(TILE_QUERY))

    assert tile.content == b"tile"
    assert tokens.refresh_count == 2
    assert tiles.calls == 2
    assert tiles.requests[1].headers["Authorization"] == "Bearer tok-2"


def test_401_twice_fails_with_second_status(settings, clock):
    proxy, tokens, tiles = make_proxy(settings, clock, [httpx.Response(401), httpx.Response(401)])

    with pytest.raises(UpstreamError) as exc:
        run(proxy.proxy_tile(TILE_QUERY))

    assert exc.value.status_code == 401
    assert exc.value.message == "WMTS request failed"
    assert tiles.calls == 2


def test_other_errors_are_not_retried(settings, clock):
    proxy, tokens, tiles = make_proxy(settings, clock, [httpx.Response(404)])

    with pytest.raises(UpstreamError) as exc:
        run(proxy.proxy_tile(TILE_QUERY))

    assert exc.value.status_code == 404
    assert tiles.calls == 1
    assert tokens.refresh_count == 1


def test_missing_content_type_defaults_to_octet_stream(settings, clock):
    proxy, _, _ = make_proxy(settings, clock, [httpx.Response(200, content=b"raw")])

    tile = run(proxy.proxy_tile({"layer": "topowebb"}))

    assert tile.content_type == "application/octet-stream"


def test_late_401_for_old_token_keeps_fresh_token(settings, clock):
    async def tiles_by_token(request):
        if request.headers["Authorization"] == "Bearer tok-1":
            await asyncio.sleep(0.1 if "slow" in str(request.url) else 0.01)
            return httpx.Response(401)
        return httpx.Response(200, content=b"tile", headers={"content-type": "image/png"})

    proxy, tokens, tiles = make_proxy(settings, clock, tiles_by_token)
    run(tokens.get_token())

    async def both():
        return await asyncio.gather(proxy.proxy_tile("a=1"), proxy.proxy_tile("slow=1"))

    first, second = run(both())

    assert first.content == second.content == b"tile"
    assert tokens.refresh_count == 2
    assert [r.headers["Authorization"] for r in tiles.requests[2:]] == ["Bearer tok-2", "Bearer tok-2"]

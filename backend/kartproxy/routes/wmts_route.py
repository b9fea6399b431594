from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response

from kartproxy.core.errors import UpstreamError
from kartproxy.dependencies import get_tile_proxy
from kartproxy.services.tile_service import TileProxy

router = APIRouter()

TILE_CACHE_CONTROL = "public, max-age=86400"

@router.get("/api/wmts")
async def wmts_endpoint(request: Request, proxy: TileProxy = Depends(get_tile_proxy)):
    """
    Proxies a KVP tile request; the query string is forwarded verbatim.
    Upstream failures keep their status and get a plain-text body.
    """
    try:
        tile = await proxy.proxy_tile(request.url.query)
    except UpstreamError as e:
        return PlainTextResponse(e.message, status_code=e.status_code)

    return Response(
        content=tile.content,
        media_type=tile.content_type,
        headers={"Cache-Control": TILE_CACHE_CONTROL}
    )

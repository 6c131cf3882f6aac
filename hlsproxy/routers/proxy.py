from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
import logging
from typing import Optional

from hlsproxy.errors import FetchError, ParameterError
from hlsproxy.utils.proxy_gateway import ProxyGateway
from hlsproxy.utils.services import get_gateway

router = APIRouter()
logger = logging.getLogger(__name__)

CORS_HEADERS = {"Access-Control-Allow-Origin": "*"}


@router.get("/proxy")
def proxy(
    url: Optional[str] = None,
    kid: Optional[str] = None,
    gateway: ProxyGateway = Depends(get_gateway),
):
    """Relay url, rewriting playlists and decrypting segments when kid has a cached key."""
    try:
        if not url:
            raise ParameterError("Missing url")
        result = gateway.handle(url, kid or None)
    except ParameterError as e:
        return PlainTextResponse(str(e), status_code=e.status_code, headers=CORS_HEADERS)
    except FetchError as e:
        logger.error(f"❌ Proxy fetch failed for {url}: {e}")
        return PlainTextResponse(str(e), status_code=e.status_code, headers=CORS_HEADERS)

    return Response(content=result.body, media_type=result.content_type, headers=result.headers)

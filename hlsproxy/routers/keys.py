from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import logging
from typing import Optional

from hlsproxy.errors import DerivationError, ParameterError
from hlsproxy.schemas.keys import DeriveKeyResponse, ErrorResponse
from hlsproxy.utils.drm.key_deriver import KeyDeriver
from hlsproxy.utils.services import get_key_deriver

router = APIRouter()
logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get(
    "/derive-key",
    response_model=DeriveKeyResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def derive_key(
    playAuth: Optional[str] = None,
    kid: Optional[str] = None,
    deriver: KeyDeriver = Depends(get_key_deriver),
):
    """Derive the key for kid and cache it for later /proxy segment requests."""
    try:
        if not playAuth or not kid:
            raise ParameterError("Missing playAuth or kid")
        key = deriver.derive_key(playAuth, kid)
    except ParameterError as e:
        return _error(e.status_code, str(e))
    except DerivationError as e:
        logger.error(f"❌ Derive key error: {e}")
        return _error(e.status_code, str(e))

    return DeriveKeyResponse(kid=kid, keyLength=len(key), cached=True)

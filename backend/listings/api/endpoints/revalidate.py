from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from listings.api.deps import get_app_settings, get_revalidator
from listings.core.config import Settings
from listings.core.exceptions import StorageError, ValidationException
from listings.core.logging import get_logger
from listings.schemas import RevalidateRequest
from listings.search.revalidation import Revalidator, secret_matches

logger = get_logger(__name__)
router = APIRouter()


@router.post("")
async def revalidate(
    payload: RevalidateRequest,
    revalidator: Revalidator = Depends(get_revalidator),
    settings: Settings = Depends(get_app_settings),
):
    """Invalidate cached reads of one kind; the shared secret is checked first."""
    if not secret_matches(payload.secret, settings.REVALIDATE_SECRET):
        logger.warning("Revalidation rejected: invalid secret", type=payload.type)
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"revalidated": False, "error": "Invalid secret"},
        )

    try:
        now = await revalidator.revalidate(payload.type, payload.offering_type_id)
    except ValidationException as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"revalidated": False, "error": e.message},
        )
    except StorageError as e:
        logger.error("Revalidation failed", type=payload.type, error=e.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"revalidated": False, "error": "Revalidation failed"},
        )

    logger.info("Revalidated", type=payload.type, offering_type_id=payload.offering_type_id)
    return {"revalidated": True, "now": int(now.timestamp() * 1000)}

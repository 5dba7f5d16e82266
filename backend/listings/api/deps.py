"""
FastAPI dependencies.

Services are built at startup in ``create_app`` and stored on
``app.state``; these helpers hand them to the endpoints.
"""

import hmac

from fastapi import Request

from listings.core.config import Settings
from listings.core.exceptions import unauthorized_exception
from listings.search.revalidation import Revalidator
from listings.search.service import ListingSearchService
from listings.search.writes import ListingWriteService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_search_service(request: Request) -> ListingSearchService:
    return request.app.state.search_service


def get_write_service(request: Request) -> ListingWriteService:
    return request.app.state.write_service


def get_revalidator(request: Request) -> Revalidator:
    return request.app.state.revalidator


def require_api_key(request: Request) -> None:
    """Reject write requests without the admin API key"""
    settings: Settings = request.app.state.settings
    provided = request.headers.get(settings.API_KEY_HEADER, "")
    expected = settings.ADMIN_API_KEY
    if not provided or not expected or not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise unauthorized_exception("Invalid API key")

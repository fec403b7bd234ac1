from starlette.requests import Request
from starlette.responses import Response

from .config import Settings
from .security import TokenPair

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


def _samesite(settings: Settings) -> str:
    # browsers drop SameSite=None cookies that are not Secure
    return "none" if settings.cookie_secure else "lax"


def set_session_cookies(response: Response, pair: TokenPair, settings: Settings):
    for name, value in ((ACCESS_COOKIE, pair.access_token), (REFRESH_COOKIE, pair.refresh_token)):
        response.set_cookie(
            name, value,
            max_age=settings.cookie_max_age,
            httponly=True,
            secure=settings.cookie_secure,
            samesite=_samesite(settings),
        )


def clear_session_cookies(response: Response, settings: Settings):
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure, samesite=_samesite(settings))


def remember_rotation(request: Request, pair: TokenPair):
    request.state.rotated_session = pair


def reapply_rotation(request: Request, response: Response) -> Response:
    """Copy a pair rotated earlier in this request onto an error response.

    The refresh token stored server side has already been replaced, so a
    response without the new cookies would strand the client.
    """
    pair = getattr(request.state, "rotated_session", None)
    if pair is not None:
        set_session_cookies(response, pair, request.app.state.settings)
    return response

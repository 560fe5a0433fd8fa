from __future__ import annotations

from fastapi import APIRouter, Request, Response

from authgate.adapters.http.starlette_adapter import StarletteRequestAdapter
from authgate.services.auth_proxy import AuthProxy

router = APIRouter(tags=["Auth"])

AUTH_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


@router.api_route("/api/auth/{path:path}", methods=AUTH_METHODS, include_in_schema=False)
async def auth_passthrough(request: Request) -> Response:
    """Hand every auth route to the external handler.

    Sign-in, callbacks, session lookup and sign-out are all implemented by
    the auth handler; this route only translates the request and response.
    """
    proxy: AuthProxy = request.app.state.auth_proxy
    adapter: StarletteRequestAdapter = request.app.state.request_adapter
    return await proxy.forward(adapter, request, Response)

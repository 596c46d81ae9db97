"""aiohttp middleware rendering Warden errors as JSON."""
from aiohttp import web
from navconfig.logging import logging

from ..exceptions import WardenError


logger = logging.getLogger("warden.handlers")


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Convert WardenError (and unexpected failures) into JSON responses."""
    try:
        return await handler(request)
    except WardenError as exc:
        if exc.status >= 500:
            logger.error(f"{request.method} {request.path}: {exc.message}")
        return web.json_response(exc.to_dict(), status=exc.status)
    except web.HTTPException:
        raise
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception(f"Unhandled error on {request.method} {request.path}: {exc}")
        return web.json_response(
            {
                "success": False,
                "error": "Internal server error",
                "message": "Unexpected error while processing the request",
            },
            status=500,
        )

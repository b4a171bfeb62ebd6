import time
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from clinic_scheduler.core.security import get_user_id_from_request  # user id from the bearer token

logger = logging.getLogger("clinic_scheduler.access")


class LogMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):

        # before the request
        start_time = time.perf_counter()

        # run the route and get its response
        response = await call_next(request)

        # elapsed time
        process_time = int((time.perf_counter() - start_time) * 1000)

        user_id = get_user_id_from_request(request)
        client_ip = request.client.host if request.client else None

        logger.info(
            "%s %s -> %s (%sms) user=%s ip=%s",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
            user_id,
            client_ip,
        )
        return response

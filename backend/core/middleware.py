import logging
import time
import uuid

logger = logging.getLogger(__name__)


class RequestIDMiddleware:
    """
    Adds/propagates a request id for tracing. Accessible in logs and responses.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        rid = request.META.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        request.request_id = rid
        response = self.get_response(request)
        response["X-Request-ID"] = rid
        return response


class TimingMiddleware:
    """
    Adds X-Response-Time-ms and logs each request at debug level.
    """
    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        t0 = time.perf_counter()
        resp = self.get_response(request)
        dt = int((time.perf_counter() - t0) * 1000)
        resp["X-Response-Time-ms"] = str(dt)
        logger.debug("%s %s -> %s in %sms [%s]", request.method, request.path, resp.status_code, dt,
                     getattr(request, "request_id", "-"))
        return resp

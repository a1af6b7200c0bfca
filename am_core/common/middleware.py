# am_core/common/middleware.py
from __future__ import annotations

import logging

from django.utils.deprecation import MiddlewareMixin

from am_core.common.api.exceptions import ensure_request_id

logger = logging.getLogger(__name__)


def client_ip(request) -> str | None:
    """
    First hop of X-Forwarded-For when behind a proxy, else REMOTE_ADDR.
    """
    forwarded = request.META.get("HTTP_X_FORWARDED_FOR")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.META.get("REMOTE_ADDR") or None


class RequestContextMiddleware(MiddlewareMixin):
    """
    Attaches per-request context used by the error envelope and the audit ledger:
      - request.request_id (echoed back as X-Request-Id)
      - request.client_ip
    An inbound X-Request-Id header is honoured so traces line up across services.
    """

    REQUEST_ID_META_KEY = "HTTP_X_REQUEST_ID"

    def process_request(self, request):
        inbound = request.META.get(self.REQUEST_ID_META_KEY)
        if inbound:
            request.request_id = inbound[:64]
        ensure_request_id(request)
        request.client_ip = client_ip(request)
        return None

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response["X-Request-Id"] = rid
        if response.status_code >= 500:
            logger.error("%s %s -> %s [%s]", request.method, request.path, response.status_code, rid)
        return response

from __future__ import annotations

from rest_framework.pagination import CursorPagination, PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = "page_size"
    max_page_size = 200


class LedgerCursorPagination(CursorPagination):
    """
    Newest-first cursor pagination for append-only tables.
    Cursors stay valid while new rows are appended at the head.
    """
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 500
    ordering = ("-timestamp", "-id")


def paginate(request, queryset, serializer_class, *, paginator=None) -> Response:
    """
    Shared pagination helper to enforce a stable contract:
      { count, next, previous, results }   (page-number)
      { next, previous, results }          (cursor)
    """
    p = paginator or DefaultPagination()
    page = p.paginate_queryset(queryset, request)
    if page is not None:
        ser = serializer_class(page, many=True)
        return p.get_paginated_response(ser.data)

    ser = serializer_class(queryset, many=True)
    return Response(ser.data)

"""Page-number pagination with a client-selectable, capped page size."""

from django.conf import settings
from rest_framework.pagination import PageNumberPagination


class StandardPagination(PageNumberPagination):
    """
    `?page=N&page_size=M`; `page_size` defaults to `REST_FRAMEWORK["PAGE_SIZE"]`
    and is capped at `API_MAX_PAGE_SIZE`.
    """

    page_size_query_param = "page_size"

    @property
    def max_page_size(self) -> int:
        return int(getattr(settings, "API_MAX_PAGE_SIZE", 100))

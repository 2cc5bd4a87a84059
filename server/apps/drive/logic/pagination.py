"""Pagination of listing querysets."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar, final

from django.conf import settings
from django.core.paginator import Paginator
from django.db.models import QuerySet

_ItemT = TypeVar('_ItemT')


@final
@dataclass(frozen=True, slots=True)
class Page(Generic[_ItemT]):
    """One page of a listing plus what a client needs to page through it."""

    items: list[_ItemT]
    total: int
    page: int
    total_pages: int


def clamp_limit(limit: int | None) -> int:
    """Bound a client-supplied page size.

    Args:
        limit: Requested page size, None for the default.

    Returns:
        Page size between 1 and ``DRIVE_PAGE_SIZE_MAX``.
    """
    if not limit or limit < 1:
        return settings.DRIVE_PAGE_SIZE
    return min(limit, settings.DRIVE_PAGE_SIZE_MAX)


def paginate(
    queryset: QuerySet[Any],
    page: int = 1,
    limit: int | None = None,
) -> Page[Any]:
    """Slice a queryset into a page.

    Pages past the end come back empty rather than raising, so a client
    that deleted the last item on a page can still render it.

    Args:
        queryset: Ordered queryset to paginate.
        page: 1-based page number.
        limit: Page size.

    Returns:
        Page with items and totals.
    """
    paginator = Paginator(queryset, clamp_limit(limit))
    page = max(page, 1)

    items: list[Any] = []
    if paginator.count and page <= paginator.num_pages:
        items = list(paginator.page(page).object_list)

    total_pages = paginator.num_pages if paginator.count else 0
    return Page(
        items=items,
        total=paginator.count,
        page=page,
        total_pages=total_pages,
    )

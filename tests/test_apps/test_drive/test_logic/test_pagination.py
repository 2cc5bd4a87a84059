"""Tests for listing pagination."""

import pytest

from server.apps.drive.logic.pagination import clamp_limit, paginate
from server.apps.drive.models import Folder


@pytest.mark.parametrize(('limit', 'expected'), [
    (None, 20),
    (0, 20),
    (-5, 20),
    (10, 10),
    (500, 100),
])
def test_clamp_limit(settings, limit, expected):
    """Test page size falls back to default and is capped."""
    settings.DRIVE_PAGE_SIZE = 20
    settings.DRIVE_PAGE_SIZE_MAX = 100

    assert clamp_limit(limit) == expected


@pytest.mark.django_db
class TestPaginate:
    """Tests for paginate function."""

    def _folders(self, user, count):
        for index in range(count):
            Folder.objects.create(user=user, name=f'folder-{index}')
        return Folder.objects.filter(user=user).order_by('name')

    def test_first_page(self, user):
        """Test first page holds the first items and totals."""
        page = paginate(self._folders(user, 5), page=1, limit=2)

        assert [folder.name for folder in page.items] == ['folder-0', 'folder-1']
        assert page.total == 5
        assert page.page == 1
        assert page.total_pages == 3

    def test_last_partial_page(self, user):
        """Test last page may be shorter than the limit."""
        page = paginate(self._folders(user, 5), page=3, limit=2)

        assert [folder.name for folder in page.items] == ['folder-4']

    def test_page_past_end_is_empty(self, user):
        """Test pages past the end come back empty."""
        page = paginate(self._folders(user, 2), page=7, limit=2)

        assert page.items == []
        assert page.total == 2
        assert page.page == 7

    def test_empty_queryset(self, user):
        """Test an empty listing has no pages."""
        page = paginate(Folder.objects.none(), page=1, limit=10)

        assert page.items == []
        assert page.total == 0
        assert page.total_pages == 0

    def test_page_below_one_is_first(self, user):
        """Test page numbers below 1 are treated as 1."""
        page = paginate(self._folders(user, 3), page=0, limit=2)

        assert page.page == 1
        assert len(page.items) == 2

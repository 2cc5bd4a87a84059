"""Tests for share link business logic."""

from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError
from django.utils import timezone

from server.apps.drive.exceptions import (
    InvalidSharePasswordError,
    NotFoundError,
    SharedFileMissingError,
    ShareLinkNotFoundError,
)
from server.apps.drive.logic.trash_operations import (
    permanent_delete_item,
    restore_item,
    trash_item,
)
from server.apps.sharing.logic.share_operations import (
    create_share_link,
    download_shared_file,
    get_share_info,
    list_share_links,
    purge_expired_share_links,
    revoke_share_link,
)
from server.apps.sharing.models import ShareLink


@pytest.mark.django_db
class TestCreateShareLink:
    """Tests for create_share_link function."""

    def test_create(self, user, shared_file):
        """Test a fresh random token is issued for the file."""
        token = create_share_link(user, shared_file.id)

        share = ShareLink.objects.get(token=token)
        assert len(token) == 64
        assert share.file_id == shared_file.id
        assert share.owner == user
        assert share.expires_at is None
        assert share.password == ''
        assert token != create_share_link(user, shared_file.id)

    def test_create_with_options(self, user, shared_file):
        """Test expiry, password and limit are stored."""
        before = timezone.now()

        token = create_share_link(
            user,
            shared_file.id,
            expires_in_days=7,
            password='secret',
            max_downloads=3,
        )

        share = ShareLink.objects.get(token=token)
        assert share.expires_at >= before + timedelta(days=7)
        assert share.expires_at <= timezone.now() + timedelta(days=7)
        assert share.password != 'secret'
        assert share.check_password('secret') is True
        assert share.max_downloads == 3

    def test_trashed_file(self, user, shared_file):
        """Test trashed files cannot be shared."""
        trash_item(user, 'file', shared_file.id)

        with pytest.raises(NotFoundError):
            create_share_link(user, shared_file.id)

    def test_other_users_file(self, other_user, shared_file):
        """Test only the owner can share a file."""
        with pytest.raises(NotFoundError):
            create_share_link(other_user, shared_file.id)

    @pytest.mark.parametrize('options', [
        {'expires_in_days': 0},
        {'max_downloads': 0},
    ])
    def test_invalid_options(self, user, shared_file, options):
        """Test non-positive lifetime or limit is rejected."""
        with pytest.raises(ValidationError):
            create_share_link(user, shared_file.id, **options)


@pytest.mark.django_db
class TestGetShareInfo:
    """Tests for get_share_info function."""

    def test_info(self, user, shared_file):
        """Test public metadata of the shared file."""
        token = create_share_link(user, shared_file.id, password='secret')

        info = get_share_info(token)

        assert info.name == 'report.pdf'
        assert info.size == 11
        assert info.mime_type == 'text/plain'
        assert info.requires_password is True

    def test_unknown_token(self, db):
        """Test unknown tokens are not found."""
        with pytest.raises(ShareLinkNotFoundError):
            get_share_info('no-such-token')

    def test_expired_link_is_deactivated(self, user, shared_file):
        """Test first access after expiry deactivates the link."""
        token = create_share_link(user, shared_file.id, expires_in_days=1)
        ShareLink.objects.filter(token=token).update(
            expires_at=timezone.now() - timedelta(seconds=1),
        )

        with pytest.raises(ShareLinkNotFoundError):
            get_share_info(token)

        assert ShareLink.objects.get(token=token).is_active is False

    def test_trashed_file(self, user, shared_file):
        """Test a trashed file reads as deleted."""
        token = create_share_link(user, shared_file.id)
        trash_item(user, 'file', shared_file.id)

        with pytest.raises(SharedFileMissingError):
            get_share_info(token)

    def test_restored_file_is_shared_again(self, user, shared_file):
        """Test restoring the file revives its links."""
        token = create_share_link(user, shared_file.id)
        trash_item(user, 'file', shared_file.id)
        restore_item(user, 'file', shared_file.id)

        assert get_share_info(token).name == 'report.pdf'

    def test_purged_file_leaves_orphan(self, user, shared_file):
        """Test a permanently deleted file reads as deleted."""
        token = create_share_link(user, shared_file.id)
        trash_item(user, 'file', shared_file.id)
        permanent_delete_item(user, 'file', shared_file.id)

        with pytest.raises(SharedFileMissingError):
            get_share_info(token)

        assert ShareLink.objects.get(token=token).file_id is None


@pytest.mark.django_db
class TestDownloadSharedFile:
    """Tests for download_shared_file function."""

    def test_download_counts(self, user, shared_file):
        """Test content is served and the download recorded."""
        token = create_share_link(user, shared_file.id)

        download = download_shared_file(token)

        assert download.content.read() == b'report body'
        assert download.original_name == 'report.pdf'
        share = ShareLink.objects.get(token=token)
        assert share.download_count == 1
        assert share.last_accessed_at is not None

    def test_password_required(self, user, shared_file):
        """Test wrong or missing passwords are refused and not counted."""
        token = create_share_link(user, shared_file.id, password='secret')

        for password in (None, 'wrong'):
            with pytest.raises(InvalidSharePasswordError):
                download_shared_file(token, password)

        assert ShareLink.objects.get(token=token).download_count == 0

    def test_correct_password(self, user, shared_file):
        """Test the right password opens the file."""
        token = create_share_link(user, shared_file.id, password='secret')

        download = download_shared_file(token, 'secret')

        assert download.content.read() == b'report body'
        assert ShareLink.objects.get(token=token).download_count == 1

    def test_unprotected_ignores_password(self, user, shared_file):
        """Test any password passes when none is configured."""
        token = create_share_link(user, shared_file.id)

        assert download_shared_file(token, 'whatever').size_bytes == 11

    def test_download_limit(self, user, shared_file):
        """Test the link stops working once the limit is used up."""
        token = create_share_link(user, shared_file.id, max_downloads=2)
        download_shared_file(token)
        download_shared_file(token)

        with pytest.raises(ShareLinkNotFoundError):
            download_shared_file(token)

        with pytest.raises(ShareLinkNotFoundError):
            get_share_info(token)

        assert ShareLink.objects.get(token=token).download_count == 2

    def test_trashed_file(self, user, shared_file):
        """Test a trashed file cannot be downloaded."""
        token = create_share_link(user, shared_file.id)
        trash_item(user, 'file', shared_file.id)

        with pytest.raises(SharedFileMissingError):
            download_shared_file(token)

    def test_missing_content(self, user, make_file):
        """Test a record without bytes is not found and not counted."""
        file_instance = make_file('gone.txt', upload=False)
        token = create_share_link(user, file_instance.id)

        with pytest.raises(NotFoundError):
            download_shared_file(token)

        assert ShareLink.objects.get(token=token).download_count == 0


@pytest.mark.django_db
class TestRevokeShareLink:
    """Tests for revoke_share_link function."""

    def test_revoke(self, user, shared_file):
        """Test revoked tokens stop resolving immediately."""
        token = create_share_link(user, shared_file.id)
        share = ShareLink.objects.get(token=token)

        revoke_share_link(user, share.id)

        assert not ShareLink.objects.filter(pk=share.pk).exists()
        with pytest.raises(ShareLinkNotFoundError):
            get_share_info(token)

    def test_revoke_other_users_link(self, user, other_user, shared_file):
        """Test only the owner can revoke."""
        token = create_share_link(user, shared_file.id)
        share = ShareLink.objects.get(token=token)

        with pytest.raises(NotFoundError):
            revoke_share_link(other_user, share.id)

        assert ShareLink.objects.filter(pk=share.pk).exists()

    def test_revoke_orphan(self, user, shared_file):
        """Test orphaned links can still be revoked."""
        token = create_share_link(user, shared_file.id)
        share = ShareLink.objects.get(token=token)
        shared_file.delete()

        revoke_share_link(user, share.id)

        assert not ShareLink.objects.exists()


@pytest.mark.django_db
class TestListShareLinks:
    """Tests for list_share_links function."""

    def test_newest_first_per_owner(self, user, other_user, make_file):
        """Test only the owner's links are listed, newest first."""
        first = make_file('a.txt')
        second = make_file('b.txt')
        theirs = make_file('c.txt', owner=other_user)
        create_share_link(user, first.id)
        create_share_link(user, second.id)
        create_share_link(other_user, theirs.id)

        page = list_share_links(user)

        assert [share.file.name for share in page.items] == ['b.txt', 'a.txt']
        assert page.total == 2

    def test_orphans_dropped_after_paging(self, user, make_file):
        """Test orphans vanish from the page but stay in the total."""
        kept = make_file('kept.txt')
        doomed = make_file('doomed.txt')
        create_share_link(user, kept.id)
        create_share_link(user, doomed.id)
        doomed.delete()

        page = list_share_links(user, page=1, limit=1)

        assert page.items == []
        assert page.total == 2
        assert page.total_pages == 2

        second_page = list_share_links(user, page=2, limit=1)
        assert [share.file.name for share in second_page.items] == ['kept.txt']


@pytest.mark.django_db
def test_purge_expired_share_links(user, shared_file):
    """Test expired links are reaped, others kept."""
    expired = create_share_link(user, shared_file.id, expires_in_days=1)
    live = create_share_link(user, shared_file.id, expires_in_days=1)
    forever = create_share_link(user, shared_file.id)
    ShareLink.objects.filter(token=expired).update(
        expires_at=timezone.now() - timedelta(hours=1),
    )

    assert purge_expired_share_links() == 1

    remaining = set(ShareLink.objects.values_list('token', flat=True))
    assert remaining == {live, forever}

"""Tests for folder hierarchy business logic."""

import pytest
from django.core.exceptions import ValidationError

from server.apps.drive.exceptions import (
    FolderNotEmptyError,
    InvalidStateError,
    NameConflictError,
    NotFoundError,
)
from server.apps.drive.logic.folder_operations import (
    create_folder,
    delete_folder,
    get_breadcrumbs,
    get_descendant_folder_ids,
    list_folders,
    move_folder,
    rename_folder,
)
from server.apps.drive.models import Folder


@pytest.mark.django_db
class TestCreateFolder:
    """Tests for create_folder function."""

    def test_create_root_folder(self, user):
        """Test creating a folder at root."""
        folder = create_folder(user, '  docs  ')

        assert folder.name == 'docs'
        assert folder.parent_id is None
        assert folder.is_trashed is False

    def test_create_nested_folder(self, user):
        """Test creating a folder under a parent."""
        parent = create_folder(user, 'docs')

        child = create_folder(user, 'reports', parent.id)

        assert child.parent_id == parent.id
        assert child.full_path == 'docs/reports'

    def test_duplicate_name_rejected(self, user):
        """Test a live sibling blocks the name."""
        create_folder(user, 'docs')

        with pytest.raises(NameConflictError) as exc_info:
            create_folder(user, 'docs')

        assert exc_info.value.item_type == 'folder'
        assert exc_info.value.name == 'docs'

    def test_same_name_under_other_parent(self, user):
        """Test names only clash between siblings."""
        first = create_folder(user, 'a')
        second = create_folder(user, 'b')

        create_folder(user, 'shared', first.id)
        folder = create_folder(user, 'shared', second.id)

        assert folder.parent_id == second.id

    def test_trashed_sibling_does_not_block(self, user):
        """Test a trashed folder frees its name."""
        Folder.objects.create(user=user, name='docs', is_trashed=True)

        assert create_folder(user, 'docs').name == 'docs'

    def test_missing_parent(self, user):
        """Test parent must exist."""
        with pytest.raises(NotFoundError):
            create_folder(user, 'docs', parent_id=99999)

    def test_trashed_parent(self, user):
        """Test parent must be live."""
        parent = Folder.objects.create(user=user, name='old', is_trashed=True)

        with pytest.raises(NotFoundError):
            create_folder(user, 'docs', parent_id=parent.id)

    def test_other_users_parent(self, user, other_user):
        """Test parent must belong to the user."""
        parent = create_folder(other_user, 'theirs')

        with pytest.raises(NotFoundError):
            create_folder(user, 'docs', parent_id=parent.id)

    @pytest.mark.parametrize('name', ['', '   ', 'a/b', '..', 'x' * 256])
    def test_invalid_name(self, user, name):
        """Test malformed names are rejected."""
        with pytest.raises(ValidationError):
            create_folder(user, name)


@pytest.mark.django_db
class TestRenameFolder:
    """Tests for rename_folder function."""

    def test_rename(self, user):
        """Test folder gets the new name."""
        folder = create_folder(user, 'docs')

        renamed = rename_folder(user, folder.id, 'papers')

        assert renamed.name == 'papers'
        assert Folder.objects.get(pk=folder.id).name == 'papers'

    def test_rename_to_same_name(self, user):
        """Test renaming to the current name is allowed."""
        folder = create_folder(user, 'docs')

        assert rename_folder(user, folder.id, 'docs').name == 'docs'

    def test_rename_conflict(self, user):
        """Test renaming onto a sibling's name fails."""
        create_folder(user, 'docs')
        folder = create_folder(user, 'papers')

        with pytest.raises(NameConflictError):
            rename_folder(user, folder.id, 'docs')

        assert Folder.objects.get(pk=folder.id).name == 'papers'

    def test_rename_trashed_folder(self, user):
        """Test trashed folders cannot be renamed."""
        folder = Folder.objects.create(user=user, name='old', is_trashed=True)

        with pytest.raises(NotFoundError):
            rename_folder(user, folder.id, 'new')


@pytest.mark.django_db
class TestMoveFolder:
    """Tests for move_folder function."""

    def test_move_under_other_folder(self, user):
        """Test moving recomputes the moved folder's path."""
        target = create_folder(user, 'archive')
        folder = create_folder(user, 'docs')

        moved = move_folder(user, folder.id, target.id)

        assert moved.parent_id == target.id
        assert moved.path == 'archive'

    def test_move_to_root(self, user):
        """Test moving to root clears parent and path."""
        parent = create_folder(user, 'docs')
        folder = create_folder(user, 'reports', parent.id)

        moved = move_folder(user, folder.id, None)

        assert moved.parent_id is None
        assert moved.path == ''

    def test_move_into_itself(self, user):
        """Test a folder cannot become its own parent."""
        folder = create_folder(user, 'docs')

        with pytest.raises(InvalidStateError):
            move_folder(user, folder.id, folder.id)

    def test_move_into_descendant(self, user):
        """Test a folder cannot move below itself."""
        top = create_folder(user, 'top')
        middle = create_folder(user, 'middle', top.id)
        bottom = create_folder(user, 'bottom', middle.id)

        with pytest.raises(InvalidStateError):
            move_folder(user, top.id, bottom.id)

        assert Folder.objects.get(pk=top.id).parent_id is None

    def test_move_name_conflict(self, user):
        """Test target must not hold a folder with the same name."""
        target = create_folder(user, 'archive')
        create_folder(user, 'docs', target.id)
        folder = create_folder(user, 'docs')

        with pytest.raises(NameConflictError):
            move_folder(user, folder.id, target.id)

    def test_move_to_missing_target(self, user):
        """Test target must exist."""
        folder = create_folder(user, 'docs')

        with pytest.raises(NotFoundError, match='Target folder not found'):
            move_folder(user, folder.id, 99999)


@pytest.mark.django_db
class TestDeleteFolder:
    """Tests for delete_folder function."""

    def test_delete_empty_folder(self, user):
        """Test an empty folder is removed."""
        folder = create_folder(user, 'docs')

        delete_folder(user, folder.id)

        assert not Folder.all_objects.filter(pk=folder.id).exists()

    def test_delete_folder_with_subfolder(self, user):
        """Test folders with live children are kept."""
        folder = create_folder(user, 'docs')
        create_folder(user, 'reports', folder.id)

        with pytest.raises(FolderNotEmptyError):
            delete_folder(user, folder.id)

    def test_delete_folder_with_file(self, user, make_file):
        """Test folders with live files are kept."""
        folder = create_folder(user, 'docs')
        make_file('a.txt', folder=folder)

        with pytest.raises(FolderNotEmptyError):
            delete_folder(user, folder.id)


@pytest.mark.django_db
class TestListFolders:
    """Tests for list_folders function."""

    def test_lists_direct_children_newest_first(self, user):
        """Test only live direct children are listed."""
        parent = create_folder(user, 'docs')
        first = create_folder(user, 'a', parent.id)
        second = create_folder(user, 'b', parent.id)
        create_folder(user, 'nested', first.id)
        Folder.objects.create(user=user, name='gone', parent=parent, is_trashed=True)

        page = list_folders(user, parent.id)

        assert [folder.id for folder in page.items] == [second.id, first.id]
        assert page.total == 2

    def test_root_listing_is_per_user(self, user, other_user):
        """Test other users' folders are never listed."""
        create_folder(user, 'mine')
        create_folder(other_user, 'theirs')

        page = list_folders(user)

        assert [folder.name for folder in page.items] == ['mine']

    def test_search(self, user):
        """Test case-insensitive name filter."""
        create_folder(user, 'Holiday Photos')
        create_folder(user, 'taxes')

        page = list_folders(user, search='photo')

        assert [folder.name for folder in page.items] == ['Holiday Photos']

    def test_pagination(self, user):
        """Test limit and page split the listing."""
        for index in range(5):
            create_folder(user, f'folder-{index}')

        page = list_folders(user, page=2, limit=2)

        assert len(page.items) == 2
        assert page.total == 5
        assert page.total_pages == 3


@pytest.mark.django_db
def test_get_descendant_folder_ids(user):
    """Test whole subtree is collected, parents first."""
    top = create_folder(user, 'top')
    left = create_folder(user, 'left', top.id)
    right = create_folder(user, 'right', top.id)
    deep = create_folder(user, 'deep', left.id)
    create_folder(user, 'unrelated')

    descendants = get_descendant_folder_ids(user, top.id)

    assert set(descendants) == {left.id, right.id, deep.id}
    assert descendants.index(left.id) < descendants.index(deep.id)


@pytest.mark.django_db
def test_get_breadcrumbs(user):
    """Test chain runs from root down to the folder."""
    top = create_folder(user, 'top')
    middle = create_folder(user, 'middle', top.id)
    bottom = create_folder(user, 'bottom', middle.id)

    chain = get_breadcrumbs(user, bottom.id)

    assert [folder.name for folder in chain] == ['top', 'middle', 'bottom']


@pytest.mark.django_db
def test_get_breadcrumbs_follows_renames(user):
    """Test breadcrumbs use parent links, not the cached path."""
    top = create_folder(user, 'top')
    child = create_folder(user, 'child', top.id)
    rename_folder(user, top.id, 'renamed')

    chain = get_breadcrumbs(user, child.id)

    assert [folder.name for folder in chain] == ['renamed', 'child']
    assert Folder.objects.get(pk=child.id).path == 'top'

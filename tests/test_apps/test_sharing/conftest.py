"""Shared fixtures for sharing app tests."""

import pytest


@pytest.fixture
def shared_file(make_file):
    """Create a live file with known content to share.

    Returns:
        File instance named report.pdf holding b'report body'.
    """
    return make_file('report.pdf', content=b'report body', size_bytes=11)

"""Shared fixtures for imagesync tests."""

import logging

import pytest

from imagesync.infra.skopeo_client import CopyEngineError


class FakeRegistryClient:
    """In-memory stand-in for RegistryClient keyed by repository name."""

    def __init__(self, tags=None, errors=None):
        self.tags = tags or {}
        self.errors = errors or {}
        self.calls = []
        self.deadlines = []

    def list_tags(self, ref, context, deadline=None):
        self.calls.append((ref.name, context))
        self.deadlines.append(deadline)
        if ref.name in self.errors:
            raise self.errors[ref.name]
        return list(self.tags.get(ref.name, []))


class FakeCopyEngine:
    """Records copies instead of running skopeo."""

    def __init__(self, fail_on=None, error=None):
        self.copies = []
        self.fail_on = fail_on
        self.error = error or CopyEngineError("manifest unknown")

    def copy(self, source, destination, source_context, destination_context,
             remove_signatures=False, sign_by=None, timeout=None):
        if self.fail_on and source.image_name() == self.fail_on:
            raise self.error
        self.copies.append({
            'source': source,
            'destination': destination,
            'source_context': source_context,
            'destination_context': destination_context,
            'remove_signatures': remove_signatures,
            'sign_by': sign_by,
            'timeout': timeout,
        })
        return ""


@pytest.fixture
def fake_registry():
    return FakeRegistryClient()


@pytest.fixture
def fake_engine():
    return FakeCopyEngine()


@pytest.fixture
def image_tree(tmp_path):
    """A directory tree holding stored images at a/ and b/."""
    root = tmp_path / 'images'
    for name in ['a', 'b']:
        image = root / name
        image.mkdir(parents=True)
        (image / 'manifest.json').write_text('{}')
        (image / 'blob').write_text('data')
    (root / 'empty').mkdir()
    return root


@pytest.fixture(autouse=True)
def reset_imagesync_logger():
    """Undo configure_logging() so caplog sees records in every test."""
    yield
    logger = logging.getLogger("imagesync")
    logger.handlers = []
    logger.setLevel(logging.NOTSET)
    logger.propagate = True

"""Test factories for creating test data."""

from tests.factories.versioning import VersionedRecordFactory

__all__ = ["VersionedRecordFactory"]

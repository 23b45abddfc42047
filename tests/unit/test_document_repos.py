import pytest

from insign.db import models
from insign.db.repositories import documents as documents_repo
from insign.db.repositories import shares as shares_repo
from insign.db.repositories import versions as versions_repo


@pytest.fixture
def document(db, org, admin):
    doc = documents_repo.create_document(
        db,
        organization_id=org.id,
        user_id=admin.id,
        name="Price list",
        file_path=f"{org.id}/price/v1.txt",
        mime_type="text/plain",
        size_bytes=100,
    )
    db.commit()
    return doc


def test_record_access_stops_at_the_limit(db, document, admin):
    share = shares_repo.create_share(
        db, document_id=document.id, user_id=admin.id, password=None, expires_at=None, max_access_count=2
    )
    assert shares_repo.record_access(db, share=share) is True
    assert shares_repo.record_access(db, share=share) is True
    assert shares_repo.record_access(db, share=share) is False
    assert share.access_count == 2
    assert share.last_accessed_at is not None


def test_record_access_without_limit(db, document, admin):
    share = shares_repo.create_share(
        db, document_id=document.id, user_id=admin.id, password=None, expires_at=None, max_access_count=None
    )
    for _ in range(5):
        assert shares_repo.record_access(db, share=share) is True
    assert share.access_count == 5


def test_charged_bytes_counts_each_blob_once(db, document, admin):
    versions_repo.add_version(
        db, document=document, file_path=f"{document.organization_id}/price/v2.txt", size_bytes=200,
        mime_type="text/plain", changes_description=None, user_id=admin.id,
    )
    # a restore points at an existing blob
    db.add(models.DocumentVersion(
        document_id=document.id, version=3, file_path=f"{document.organization_id}/price/v1.txt",
        size_bytes=100, mime_type="text/plain", created_by=admin.id,
    ))
    db.commit()
    assert versions_repo.charged_bytes(db, document_id=document.id) == 300

import uuid

import pytest

from insign.errors import NotFoundError
from insign.services.storage_service import StorageService, get_storage_service, safe_filename


def test_safe_filename():
    assert safe_filename("../../etc/passwd") == "passwd"
    assert safe_filename("my contract (final).pdf") == "my_contract_final_.pdf"
    assert safe_filename("") == "file"
    assert len(safe_filename("a" * 400 + ".pdf")) == 150


def test_paths_are_relative_and_versioned():
    org_id, doc_id, req_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    assert StorageService.version_path(org_id, doc_id, 3, "Deal.pdf") == f"{org_id}/{doc_id}/v3_Deal.pdf"
    assert StorageService.sealed_path(org_id, doc_id, req_id) == f"{org_id}/{doc_id}/sealed/{req_id}.pdf"


def test_save_read_delete_roundtrip(tmp_path):
    storage = StorageService(tmp_path)
    storage.save("org/doc/v1_a.txt", b"payload")
    assert (tmp_path / "org" / "doc" / "v1_a.txt").read_bytes() == b"payload"
    assert storage.exists("org/doc/v1_a.txt")
    assert storage.read("org/doc/v1_a.txt") == b"payload"
    assert storage.delete("org/doc/v1_a.txt") is True
    assert storage.delete("org/doc/v1_a.txt") is False
    assert not storage.exists("org/doc/v1_a.txt")
    assert not storage.exists(None)


def test_missing_and_escaping_paths(tmp_path):
    storage = StorageService(tmp_path)
    with pytest.raises(NotFoundError):
        storage.read("nope.txt")
    with pytest.raises(NotFoundError):
        storage.read("../outside.txt")
    assert storage.delete("../outside.txt") is False


def test_default_root_follows_env(storage_dir):
    assert get_storage_service().root == storage_dir.resolve()

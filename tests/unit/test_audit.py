import uuid

from insign.audit import AuditAction, AuditStatus, log, log_for_user
from insign.db.repositories import audits as audits_repo


def test_log_stores_plain_values(db, org, admin):
    entry = log(
        db,
        action=AuditAction.DOCUMENT_UPLOAD,
        status=AuditStatus.FAILURE,
        target_type="document",
        actor_user_id=admin.id,
        organization_id=org.id,
        metadata={"name": "a.pdf"},
        reason="quota",
    )
    assert entry.action_type == "document_upload"
    assert entry.status == "failure"
    assert entry.metadata_json == {"name": "a.pdf"}


def test_log_for_user_scopes_to_context_org(db, org, admin, make_org, make_user):
    other_org = make_org(name="Other")
    outsider = make_user(other_org)
    log_for_user(db, {"id": admin.id, "organization_id": org.id},
                 action=AuditAction.TAG_CREATE, target_type="tag")
    log_for_user(db, {"id": outsider.id, "organization_id": other_org.id},
                 action=AuditAction.TAG_DELETE, target_type="tag")

    mine = audits_repo.get_audit_logs(db, organization_id=org.id)
    assert [e.action_type for e in mine] == ["tag_create"]
    assert audits_repo.get_audit_logs(db, organization_id=org.id, action_type="tag_delete") == []


def test_filter_by_target(db, org, admin):
    ctx = {"id": admin.id, "organization_id": org.id}
    first = uuid.uuid4()
    log_for_user(db, ctx, action=AuditAction.FOLDER_CREATE, target_type="folder", target_id=first)
    log_for_user(db, ctx, action=AuditAction.FOLDER_CREATE, target_type="folder", target_id=uuid.uuid4())

    rows = audits_repo.get_audit_logs(db, organization_id=org.id, target_type="folder", target_id=first)
    assert [r.target_id for r in rows] == [first]
    assert rows[0].metadata_json is None

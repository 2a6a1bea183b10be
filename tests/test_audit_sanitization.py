from app.models.audit import AuditLog
from app.utils.audit import actor_from_api_key, log_audit, sanitize_payload_for_audit


def test_audit_log_masks_credentials(db_session):
    payload = {
        "client_secret": "spotify-secret-value",
        "apikey": "abc",
        "name": "update-show-trending",
        "nested": [{"access_token": "token-123456"}],
    }

    log_audit(db_session, actor="test", action="MASK_TEST", entity="JobSetting", entity_id=1, data=payload)
    db_session.commit()

    entry = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == "MASK_TEST")
        .order_by(AuditLog.id.desc())
        .first()
    )
    assert entry is not None
    assert entry.data_json["client_secret"] == "***alue"
    assert entry.data_json["apikey"] == "***"
    assert entry.data_json["name"] == "update-show-trending"
    assert entry.data_json["nested"][0]["access_token"] == "***3456"


def test_sanitize_leaves_plain_values_alone():
    assert sanitize_payload_for_audit({"interval_ms": 60000}) == {"interval_ms": 60000}
    assert sanitize_payload_for_audit("raw") == "raw"


def test_actor_from_api_key():
    class Key:
        prefix = "sl_abc123"

    assert actor_from_api_key(Key()) == "apikey:sl_abc123"
    assert actor_from_api_key(None, fallback="admin") == "admin"

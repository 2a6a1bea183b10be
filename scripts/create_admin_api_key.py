"""Create an admin API key and print the raw token once."""
import sys

from app.db import get_sessionmaker, init_engine
from app.models.api_key import ApiKey, ApiScope
from app.utils.apikey import gen_key
from app.utils.audit import log_audit


def main(name: str = "bootstrap-admin") -> None:
    init_engine()
    db = get_sessionmaker()()
    raw_token, prefix, key_hash = gen_key()

    try:
        api_key = ApiKey(name=name, prefix=prefix, key_hash=key_hash, scope=ApiScope.admin, is_active=True)
        db.add(api_key)
        db.flush()
        log_audit(db, actor="cli", action="CREATE_API_KEY", entity="ApiKey", entity_id=api_key.id, data={"name": name})
        db.commit()
        db.refresh(api_key)

        print("Admin API key created; it is shown only once:")
        print(f"    X-API-Key: {raw_token}")
        print(f"(id: {api_key.id}, prefix: {api_key.prefix})")
    finally:
        db.close()


if __name__ == "__main__":
    main(*sys.argv[1:2])

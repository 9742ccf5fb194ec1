import json
import sys

import pytest

from app.errors import ValidationError
from scripts import db_status, migrate_legacy_links


def test_load_store_from_keyed_export(tmp_path):
    export = tmp_path / "links.json"
    export.write_text(
        json.dumps(
            {
                "a" * 32: {
                    "email": "one@example.com",
                    "otp": "123456",
                    "expiresAt": "2026-01-01T00:00:00Z",
                    "used": False,
                },
            }
        ),
        encoding="utf-8",
    )
    store = migrate_legacy_links.load_store(str(export))
    assert len(store) == 1
    assert store.get("a" * 32).email == "one@example.com"


def test_load_store_from_record_list(tmp_path):
    export = tmp_path / "links.json"
    export.write_text(
        json.dumps(
            [
                {"id": "b" * 32, "email": "two@example.com", "otp": "1", "expires_at": 1767225600000},
                {"id": "c" * 32, "email": "three@example.com", "otp": "2", "expires_at": 1767225600000},
            ]
        ),
        encoding="utf-8",
    )
    store = migrate_legacy_links.load_store(str(export))
    assert sorted(link_id for link_id, _ in store.items()) == ["b" * 32, "c" * 32]


def test_load_store_rejects_bad_records(tmp_path):
    export = tmp_path / "links.json"
    export.write_text(json.dumps({"d" * 32: {"email": "x@example.com"}}), encoding="utf-8")
    with pytest.raises(ValidationError):
        migrate_legacy_links.load_store(str(export))


@pytest.mark.parametrize(
    "data",
    [
        ["not-a-record"],
        [{"email": "x@example.com", "expiresAt": "2026-01-01T00:00:00Z"}],
        {"e" * 32: "not-a-record"},
        "links",
    ],
)
def test_load_store_rejects_malformed_export(tmp_path, data):
    export = tmp_path / "links.json"
    export.write_text(json.dumps(data), encoding="utf-8")
    with pytest.raises(ValidationError):
        migrate_legacy_links.load_store(str(export))


def test_db_status_json_output(engine, monkeypatch, capsys):
    from sqlalchemy.orm import sessionmaker

    monkeypatch.setattr(db_status, "SessionLocal", sessionmaker(bind=engine))
    monkeypatch.setattr(sys, "argv", ["db_status.py", "--json"])
    db_status.main()
    report = json.loads(capsys.readouterr().out)
    assert report["database_connected"] is True
    assert report["stats"]["secure_links"]["total"] == 0

import pytest

import scripts.postgres_migrate as postgres_migrate


class _FakeConnection:
    def __enter__(self):
        return self

    def __exit__(self, *_exc):
        return False


def test_migrate_requires_dsn(monkeypatch):
    monkeypatch.delenv("PROPOSAL_POSTGRES_DSN", raising=False)

    with pytest.raises(RuntimeError, match="POSTGRES_MIGRATION_DSN_REQUIRED:proposals"):
        postgres_migrate.main(["--dsn", ""])


def test_migrate_requires_driver(monkeypatch):
    monkeypatch.setattr(postgres_migrate, "find_spec", lambda _name: None)

    with pytest.raises(RuntimeError, match="POSTGRES_MIGRATION_DRIVER_MISSING"):
        postgres_migrate.main(["--dsn", "postgresql://u:p@localhost:5432/db"])


def test_migrate_applies_namespace_with_dict_rows(monkeypatch, capsys):
    psycopg = pytest.importorskip("psycopg")
    connect_calls = []
    applied_calls = []

    def _connect(dsn, **kwargs):
        connect_calls.append((dsn, kwargs))
        return _FakeConnection()

    def _apply(*, connection, namespace):
        applied_calls.append(namespace)
        return ["0001"]

    monkeypatch.setattr(psycopg, "connect", _connect)
    monkeypatch.setattr(
        "src.infrastructure.postgres_migrations.apply_postgres_migrations", _apply
    )

    assert postgres_migrate.main(["--dsn", "postgresql://u:p@localhost:5432/db"]) == 0

    assert connect_calls[0][0] == "postgresql://u:p@localhost:5432/db"
    assert "row_factory" in connect_calls[0][1]
    assert applied_calls == ["proposals"]
    assert "namespace=proposals: 0001" in capsys.readouterr().out

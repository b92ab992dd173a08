import builtins
from datetime import timedelta

import pytest

from src.api.routers import proposals_config
from src.core.proposals.repository import ProposalPersistenceError
from src.infrastructure.proposals import InMemoryProposalRepository


def test_proposal_backend_default_and_unknown_values(monkeypatch):
    monkeypatch.delenv("PROPOSAL_STORE_BACKEND", raising=False)
    assert proposals_config.proposal_store_backend_name() == "IN_MEMORY"

    monkeypatch.setenv("PROPOSAL_STORE_BACKEND", " postgres ")
    assert proposals_config.proposal_store_backend_name() == "POSTGRES"

    monkeypatch.setenv("PROPOSAL_STORE_BACKEND", "unknown")
    assert proposals_config.proposal_store_backend_name() == "IN_MEMORY"


def test_in_memory_backend_builds_in_memory_repository(monkeypatch):
    monkeypatch.setenv("PROPOSAL_STORE_BACKEND", "IN_MEMORY")
    assert isinstance(proposals_config.build_repository(), InMemoryProposalRepository)


def test_app_base_url_strips_trailing_slash(monkeypatch):
    monkeypatch.setenv("APP_BASE_URL", "https://app.example.com/ ")
    assert proposals_config.app_base_url() == "https://app.example.com"

    monkeypatch.delenv("APP_BASE_URL")
    assert proposals_config.app_base_url() == "http://localhost:8000"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, 3), ("5", 5), ("0", 3), ("-2", 3), ("abc", 3), ("  ", 3)],
)
def test_write_max_attempts_falls_back_on_invalid_values(monkeypatch, raw, expected):
    if raw is None:
        monkeypatch.delenv("PROPOSAL_WRITE_MAX_ATTEMPTS", raising=False)
    else:
        monkeypatch.setenv("PROPOSAL_WRITE_MAX_ATTEMPTS", raw)
    assert proposals_config.proposal_write_max_attempts() == expected


def test_link_ttl_defaults_to_seven_days(monkeypatch):
    monkeypatch.delenv("PROPOSAL_LINK_TTL_DAYS", raising=False)
    assert proposals_config.proposal_link_ttl() == timedelta(days=7)

    monkeypatch.setenv("PROPOSAL_LINK_TTL_DAYS", "2")
    assert proposals_config.proposal_link_ttl() == timedelta(days=2)


def test_build_repository_postgres_requires_dsn(monkeypatch):
    monkeypatch.setenv("PROPOSAL_STORE_BACKEND", "POSTGRES")
    monkeypatch.delenv("PROPOSAL_POSTGRES_DSN", raising=False)

    with pytest.raises(RuntimeError, match="PROPOSAL_POSTGRES_DSN_REQUIRED"):
        proposals_config.build_repository()


def test_build_repository_postgres_driver_error_passthrough(monkeypatch):
    def _raise_driver_error(**_kwargs):
        raise RuntimeError("PROPOSAL_POSTGRES_DRIVER_MISSING")

    monkeypatch.setattr(proposals_config, "PostgresProposalRepository", _raise_driver_error)

    with pytest.raises(RuntimeError, match="PROPOSAL_POSTGRES_DRIVER_MISSING"):
        proposals_config.build_repository()


def test_build_repository_postgres_connection_failure_mapped(monkeypatch):
    def _raise_connection_error(**_kwargs):
        raise ValueError("connection failure")

    monkeypatch.setattr(proposals_config, "PostgresProposalRepository", _raise_connection_error)

    with pytest.raises(RuntimeError, match="PROPOSAL_POSTGRES_CONNECTION_FAILED"):
        proposals_config.build_repository()


def test_postgres_connection_exception_types_handles_missing_driver(monkeypatch):
    original_import = builtins.__import__

    def _import_with_psycopg_missing(name, *args, **kwargs):
        if name == "psycopg":
            raise ImportError("psycopg not installed")
        return original_import(name, *args, **kwargs)

    monkeypatch.setattr(builtins, "__import__", _import_with_psycopg_missing)
    exception_types = proposals_config._postgres_connection_exception_types()
    assert ValueError in exception_types


def test_build_repository_maps_unreachable_store(monkeypatch):
    def _raise_store_unavailable(**_kwargs):
        raise ProposalPersistenceError("PROPOSAL_STORE_UNAVAILABLE")

    monkeypatch.setattr(proposals_config, "PostgresProposalRepository", _raise_store_unavailable)

    with pytest.raises(RuntimeError, match="PROPOSAL_POSTGRES_CONNECTION_FAILED"):
        proposals_config.build_repository()

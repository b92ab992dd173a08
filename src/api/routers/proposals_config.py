import os
from datetime import timedelta
from typing import cast

from src.core.proposals.repository import ProposalPersistenceError, ProposalRepository
from src.core.proposals.service import DEFAULT_MAX_WRITE_ATTEMPTS, LINK_TTL
from src.infrastructure.proposals import InMemoryProposalRepository, PostgresProposalRepository


def proposal_store_backend_name() -> str:
    backend = os.getenv("PROPOSAL_STORE_BACKEND", "IN_MEMORY").strip().upper()
    return "POSTGRES" if backend == "POSTGRES" else "IN_MEMORY"


def proposal_postgres_dsn() -> str:
    return os.getenv("PROPOSAL_POSTGRES_DSN", "").strip()


def app_base_url() -> str:
    return os.getenv("APP_BASE_URL", "http://localhost:8000").strip().rstrip("/")


def proposal_write_max_attempts() -> int:
    return _env_positive_int("PROPOSAL_WRITE_MAX_ATTEMPTS", DEFAULT_MAX_WRITE_ATTEMPTS)


def proposal_link_ttl() -> timedelta:
    days = _env_positive_int("PROPOSAL_LINK_TTL_DAYS", LINK_TTL.days)
    return timedelta(days=days)


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ProposalPersistenceError,
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_repository() -> ProposalRepository:
    if proposal_store_backend_name() == "POSTGRES":
        dsn = proposal_postgres_dsn()
        if not dsn:
            raise RuntimeError("PROPOSAL_POSTGRES_DSN_REQUIRED")
        try:
            return cast(ProposalRepository, PostgresProposalRepository(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("PROPOSAL_POSTGRES_CONNECTION_FAILED") from exc
    return cast(ProposalRepository, InMemoryProposalRepository())


def _env_positive_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default

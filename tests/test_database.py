from payrecon.core.database import _build_connect_args, _is_sqlite_memory, _normalize_database_url


def test_postgres_scheme_is_normalized():
    assert _normalize_database_url("postgres://u:p@db:5432/pay") == "postgresql://u:p@db:5432/pay"
    assert _normalize_database_url("postgresql://u:p@db:5432/pay") == "postgresql://u:p@db:5432/pay"
    assert _normalize_database_url("sqlite:///./payrecon.db") == "sqlite:///./payrecon.db"


def test_remote_postgres_requires_ssl():
    args = _build_connect_args("postgresql://u:p@pay.example.id:5432/pay")
    assert args["sslmode"] == "require"
    assert args["keepalives"] == 1


def test_local_postgres_skips_ssl():
    assert "sslmode" not in _build_connect_args("postgresql://u:p@localhost:5432/pay")


def test_sqlite_connect_args():
    assert _build_connect_args("sqlite:///./payrecon.db") == {"check_same_thread": False}


def test_sqlite_memory_detection():
    assert _is_sqlite_memory("sqlite://")
    assert _is_sqlite_memory("sqlite:///:memory:")
    assert not _is_sqlite_memory("sqlite:///./payrecon.db")
    assert not _is_sqlite_memory("postgresql://u:p@db/pay")

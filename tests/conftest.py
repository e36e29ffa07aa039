import pytest
from postboard.store import Store

@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep tests away from the real ~/.postboard and any ambient DSN."""
    monkeypatch.setenv('POSTBOARD_CONFIG', str(tmp_path / 'home' / 'config.json'))
    for name in ('POSTBOARD_DSN', 'LOG_LEVEL', 'POSTBOARD_SQLITE_CACHE_KIB',
                 'POSTBOARD_SQLITE_BUSY_TIMEOUT_MS', 'POSTBOARD_SQLITE_VERIFY'):
        monkeypatch.delenv(name, raising=False)

@pytest.fixture()
def sqlite_dsn(tmp_path):
    return f"sqlite:///{tmp_path / 'pb.db'}"

@pytest.fixture()
def store(sqlite_dsn):
    with Store.open(sqlite_dsn) as s:
        s.ensure_schema()
        yield s

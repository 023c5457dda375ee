import pytest

from lending_os.db.url import normalize_database_url


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("postgres://u:p@h:5432/db", "postgresql+asyncpg://u:p@h:5432/db"),
        ("postgresql+psycopg://u:p@h/db", "postgresql+asyncpg://u:p@h/db"),
        ("postgresql://u:p@h/db?sslmode=require", "postgresql+asyncpg://u:p@h/db?ssl=require"),
        ("postgresql+asyncpg://u:p@h/db?ssl=true", "postgresql+asyncpg://u:p@h/db?ssl=require"),
        ("sqlite+aiosqlite:///tmp.db", "sqlite+aiosqlite:///tmp.db"),
        ("", ""),
    ],
)
def test_normalize_database_url(raw, expected):
    assert normalize_database_url(raw) == expected

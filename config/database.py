"""config.database

Database configuration.

Default: Postgres via DATABASE_URL (row-level locking relies on SELECT ... FOR UPDATE).
Fallback: DB_* variables for a local Postgres instance.

Notes for managed Postgres:
- Hosted URLs may be `postgres://...`; SQLAlchemy expects `postgresql://...`.
"""
import os
from dotenv import load_dotenv

_is_production = os.getenv('FLASK_ENV', 'development') == 'production'
load_dotenv(override=(not _is_production))


def _normalize_database_url(url: str) -> str:
    url = url.strip()
    # Heroku/Render-style scheme alias + make driver explicit.
    if url.startswith('postgres://'):
        return 'postgresql+psycopg://' + url[len('postgres://'):]
    if url.startswith('postgresql://'):
        return 'postgresql+psycopg://' + url[len('postgresql://'):]

    return url


def _build_postgres_uri() -> str:
    database_config = {
        'host': os.getenv('DB_HOST', 'localhost'),
        'port': int(os.getenv('DB_PORT', 5432)),
        'user': os.getenv('DB_USER', 'postgres'),
        'password': os.getenv('DB_PASSWORD', ''),
        'database': os.getenv('DB_NAME', 'promo_ledger'),
    }

    return (
        f"postgresql+psycopg://{database_config['user']}:{database_config['password']}"
        f"@{database_config['host']}:{database_config['port']}/{database_config['database']}"
    )


def get_sqlalchemy_database_uri() -> str:
    """Return the SQLAlchemy DB URI.

    Priority:
    1) DATABASE_URL (managed Postgres, or any SQLAlchemy URL)
    2) DB_* vars (local Postgres)
    """

    database_url = os.getenv('DATABASE_URL')
    if database_url:
        return _normalize_database_url(database_url)

    return _build_postgres_uri()


SQLALCHEMY_DATABASE_URI = get_sqlalchemy_database_uri()

from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_ASYNC_SCHEME = "postgresql+asyncpg"


def normalize_database_url(url: str) -> str:
    """Coerce a Postgres URL onto the asyncpg driver.

    asyncpg takes ``ssl=<mode>`` rather than libpq's ``sslmode``; hosted
    providers usually hand out the libpq spelling.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}:
        scheme = _ASYNC_SCHEME
    if scheme != _ASYNC_SCHEME:
        return url

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    sslmode_key = next((key for key in query if key.lower() == "sslmode"), None)
    if sslmode_key:
        mode = query.pop(sslmode_key).lower().strip()
        if "ssl" not in query:
            if mode in {"disable", "allow", "prefer", "require", "verify-ca", "verify-full"}:
                query["ssl"] = mode
            else:
                query["ssl"] = "require"
    ssl_val = query.get("ssl")
    if ssl_val is not None and ssl_val.lower() in {"1", "true", "yes", "on"}:
        query["ssl"] = "require"
    elif ssl_val is not None and ssl_val.lower() in {"0", "false", "no", "off"}:
        query["ssl"] = "disable"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))

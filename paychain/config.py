import os
from decimal import Decimal, InvalidOperation
from pathlib import Path
from urllib.parse import unquote, urlparse

from django.core.exceptions import ImproperlyConfigured
from dotenv import load_dotenv

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_environment(base_dir):
    load_dotenv(base_dir / ".env")


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def env_list(name, default=None):
    value = os.getenv(name)
    if value is None:
        return list(default or [])
    return [item.strip() for item in value.split(",") if item.strip()]


def _env_number(name, default, *, parse, kind, minimum=None, strict=False):
    """Read a numeric variable, enforcing ``> minimum`` when ``strict``, else ``>=``."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        value = parse(str(default))
    else:
        try:
            value = parse(raw.strip())
        except (ValueError, InvalidOperation) as exc:
            raise ImproperlyConfigured(f"{name} must be {kind}") from exc

    if minimum is not None:
        too_small = value <= minimum if strict else value < minimum
        if too_small:
            bound = ">" if strict else ">="
            raise ImproperlyConfigured(f"{name} must be {bound} {minimum}")
    return value


def env_int(name, default, *, minimum=None):
    return _env_number(name, default, parse=int, kind="an integer", minimum=minimum)


def env_float(name, default, *, minimum=None, positive=False):
    if positive:
        return _env_number(
            name, default, parse=float, kind="a number", minimum=0, strict=True
        )
    return _env_number(name, default, parse=float, kind="a number", minimum=minimum)


def env_decimal(name, default, *, positive=False):
    value = _env_number(
        name,
        default,
        parse=Decimal,
        kind="a decimal number",
        minimum=0 if positive else None,
        strict=positive,
    )
    if not value.is_finite():
        raise ImproperlyConfigured(f"{name} must be finite")
    return value


def _sqlite_name(base_dir, raw_name):
    if raw_name == ":memory:":
        return raw_name
    path = Path(raw_name)
    return str(path if path.is_absolute() else base_dir / path)


def _sqlite_database(base_dir, raw_name):
    name = _sqlite_name(base_dir, raw_name)
    test_dir = Path(name).parent if name != ":memory:" else base_dir
    return {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": name,
        # Writers queue on the database lock instead of failing on upgrade.
        "OPTIONS": {
            "transaction_mode": "IMMEDIATE",
            "timeout": env_float("SQLITE_BUSY_TIMEOUT", 20.0, positive=True),
        },
        # A file, not shared-cache memory, so concurrent test connections
        # wait on the busy timeout.
        "TEST": {"NAME": str(test_dir / "test_paychain.sqlite3")},
    }


def parse_database_url(base_dir, database_url):
    parsed = urlparse(database_url)
    scheme = parsed.scheme.split("+", 1)[0]

    if scheme in {"postgres", "postgresql"}:
        return {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": unquote(parsed.path.lstrip("/")),
            "USER": unquote(parsed.username or ""),
            "PASSWORD": unquote(parsed.password or ""),
            "HOST": parsed.hostname or "",
            "PORT": str(parsed.port or ""),
            # Wallet debits rely on short transactions; fail fast on lock waits.
            "OPTIONS": {"options": "-c lock_timeout=5000"},
        }

    if scheme == "sqlite":
        name = unquote(parsed.path)
        if parsed.netloc:
            name = f"/{parsed.netloc}{name}"
        return _sqlite_database(base_dir, name if name not in {"", "/"} else "db.sqlite3")

    raise ImproperlyConfigured(
        "DATABASE_URL must use sqlite://, postgres://, or postgresql://"
    )


def build_databases(base_dir):
    """``DATABASE_URL`` when set, otherwise a local SQLite file at ``SQLITE_PATH``."""
    database_url = os.getenv("DATABASE_URL", "").strip()
    if database_url:
        default = parse_database_url(base_dir, database_url)
    else:
        default = _sqlite_database(base_dir, os.getenv("SQLITE_PATH", "db.sqlite3"))
    return database_url, {"default": default}

import os
from decimal import Decimal
from pathlib import Path
from unittest.mock import patch

from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase

from paychain.config import build_databases, env_decimal, env_float, env_int

BASE_DIR = Path("/srv/paychain")


class EnvNumberTests(SimpleTestCase):
    def test_defaults_apply_when_unset_or_blank(self):
        with patch.dict(os.environ, {"PAYCHAIN_TEST_INT": "  "}, clear=False):
            self.assertEqual(env_int("PAYCHAIN_TEST_INT", 3, minimum=1), 3)
        self.assertEqual(env_decimal("PAYCHAIN_TEST_MISSING", "10.5"), Decimal("10.5"))

    def test_rejects_malformed_and_out_of_range_values(self):
        cases = (
            (env_int, "PAYCHAIN_TEST_VALUE", "three", {"minimum": 1}),
            (env_int, "PAYCHAIN_TEST_VALUE", "0", {"minimum": 1}),
            (env_float, "PAYCHAIN_TEST_VALUE", "0", {"positive": True}),
            (env_decimal, "PAYCHAIN_TEST_VALUE", "-1", {"positive": True}),
            (env_decimal, "PAYCHAIN_TEST_VALUE", "Infinity", {}),
        )
        for helper, name, raw, kwargs in cases:
            with self.subTest(helper=helper.__name__, raw=raw):
                with patch.dict(os.environ, {name: raw}):
                    with self.assertRaises(ImproperlyConfigured):
                        helper(name, 1, **kwargs)


class BuildDatabasesTests(SimpleTestCase):
    def test_sqlite_file_by_default(self):
        with patch.dict(os.environ, {"DATABASE_URL": "", "SQLITE_PATH": "data/app.db"}):
            url, databases = build_databases(BASE_DIR)

        self.assertEqual(url, "")
        self.assertEqual(databases["default"]["NAME"], str(BASE_DIR / "data/app.db"))

    def test_sqlite_writers_queue_and_tests_use_a_file(self):
        with patch.dict(
            os.environ,
            {"DATABASE_URL": "", "SQLITE_PATH": "paychain.db", "SQLITE_BUSY_TIMEOUT": "5"},
        ):
            _, databases = build_databases(BASE_DIR)

        default = databases["default"]
        self.assertEqual(default["OPTIONS"]["transaction_mode"], "IMMEDIATE")
        self.assertEqual(default["OPTIONS"]["timeout"], 5.0)
        self.assertEqual(default["TEST"]["NAME"], str(BASE_DIR / "test_paychain.sqlite3"))

    def test_postgres_url(self):
        with patch.dict(
            os.environ, {"DATABASE_URL": "postgres://pay:s%40fe@db:5433/paychain"}
        ):
            _, databases = build_databases(BASE_DIR)

        default = databases["default"]
        self.assertEqual(default["ENGINE"], "django.db.backends.postgresql")
        self.assertEqual(default["PASSWORD"], "s@fe")
        self.assertEqual(default["PORT"], "5433")
        self.assertEqual(default["NAME"], "paychain")

    def test_unknown_scheme_is_rejected(self):
        with patch.dict(os.environ, {"DATABASE_URL": "mysql://db/paychain"}):
            with self.assertRaises(ImproperlyConfigured):
                build_databases(BASE_DIR)

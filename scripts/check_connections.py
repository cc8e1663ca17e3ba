#!/usr/bin/env python3
"""
Connection Check Script

Run this to verify the database, MongoDB and DeepSeek are reachable.
Usage: python scripts/check_connections.py
"""
from peopleos.core.config import get_settings
from peopleos.db.mongodb import test_mongo_connection
from peopleos.db.postgres import test_postgres_connection
from peopleos.services.deepseek_client import get_deepseek_client


def main() -> int:
    settings = get_settings()
    failures = 0
    print("=" * 50)
    print(f"{settings.app_name.upper()} - CONNECTION CHECK")
    print("=" * 50)

    print("\n[1] Relational database...")
    if settings.database_url:
        print(f"    URL: {settings.database_url.split('@')[-1]}")
    else:
        print(f"    URL: postgresql://{settings.postgres_user}:****@{settings.postgres_host}:{settings.postgres_port}/{settings.postgres_db}")
    if test_postgres_connection():
        print("    OK: CONNECTED")
    else:
        print("    FAILED")
        failures += 1

    print("\n[2] MongoDB...")
    print(f"    URI: {settings.mongodb_uri}")
    print(f"    Database: {settings.mongodb_db}")
    if test_mongo_connection():
        print("    OK: CONNECTED")
    else:
        print("    FAILED")
        failures += 1

    print("\n[3] DeepSeek API...")
    if settings.deepseek_api_key:
        print(f"    Base URL: {settings.deepseek_base_url}")
        if get_deepseek_client().test_connection():
            print("    OK: CONNECTED")
        else:
            print("    FAILED")
            failures += 1
    else:
        print("    SKIPPED: API key not configured")

    print("\n" + "=" * 50)
    print("All connections OK" if not failures else f"{failures} connection(s) failed")
    print("=" * 50)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())

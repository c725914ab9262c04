#!/usr/bin/env python3
"""
Create the videos table in Snowflake.

Safe to run more than once: the DDL uses CREATE TABLE IF NOT EXISTS.

Usage:
    python scripts/init_schema.py
    python scripts/init_schema.py --dry-run

Requires:
    - .env file with Snowflake credentials
"""

import sys
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tubely.config.settings import Settings  # noqa: E402
from tubely.infrastructure.snowflake.client import (  # noqa: E402
    SnowflakeConnectionError,
    get_snowflake_connection,
)
from tubely.infrastructure.snowflake.repositories.videos import (  # noqa: E402
    VIDEOS_TABLE_DDL,
    SnowflakeConfig,
)


def create_schema(settings: Settings, dry_run: bool = False) -> bool:
    if not settings.snowflake_account or not settings.snowflake_user:
        print("ERROR: Missing SNOWFLAKE_ACCOUNT or SNOWFLAKE_USER")
        return False

    if not settings.snowflake_password and not settings.snowflake_private_key_path:
        print("ERROR: No authentication method available (password or key file)")
        return False

    if dry_run:
        print("\n=== DRY RUN - Nothing will be executed ===\n")
        print(VIDEOS_TABLE_DDL)
        return True

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    print(f"Connecting to Snowflake account: {config.account}")
    print(f"Using database {config.database}, schema {config.schema}")

    try:
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            try:
                cursor.execute(VIDEOS_TABLE_DDL)
                conn.commit()
            finally:
                cursor.close()
    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        return False

    print("[OK] videos table ready")
    return True


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Create the Tubely tables in Snowflake')
    parser.add_argument('--dry-run', action='store_true', help='Print the DDL, don\'t execute it')
    args = parser.parse_args()

    success = create_schema(Settings(), dry_run=args.dry_run)
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()

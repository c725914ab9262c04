#!/usr/bin/env python3
"""
Issue a bearer token for local development.

There is no login endpoint; this signs a token with JWT_SECRET so the API
can be exercised with curl or the /docs page.

Usage:
    python scripts/issue_token.py
    python scripts/issue_token.py --user-id 6f1c... --hours 24
"""

import sys
import uuid
from datetime import timedelta
from pathlib import Path

# Add the project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from tubely.config.settings import Settings  # noqa: E402
from tubely.infrastructure.auth.tokens import create_access_token  # noqa: E402


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Issue a development access token')
    parser.add_argument('--user-id', type=uuid.UUID, default=None, help='User UUID (random if omitted)')
    parser.add_argument('--hours', type=float, default=1.0, help='Token lifetime in hours')
    args = parser.parse_args()

    settings = Settings()
    if not settings.jwt_secret:
        print("ERROR: JWT_SECRET is not set")
        sys.exit(1)

    user_id = args.user_id or uuid.uuid4()
    token = create_access_token(
        user_id,
        settings.jwt_secret,
        expires_in=timedelta(hours=args.hours),
        algorithm=settings.jwt_algorithm,
    )

    print(f"user_id: {user_id}")
    print(f"Authorization: Bearer {token}")


if __name__ == '__main__':
    main()

#!/usr/bin/env python3
"""
Mint a bearer token for local development.

Usage:
    python scripts/issue_token.py <user-uuid> [--minutes 60]

Requires:
    - .env file (or environment) with JWT_SECRET
"""

import argparse
import sys
from datetime import timedelta
from pathlib import Path
from typing import Optional
from uuid import UUID

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from src.api.auth import create_access_token
from src.config.settings import Settings, get_settings


def issue_token(settings: Settings, user_id: UUID, minutes: Optional[int] = None) -> str:
    """Sign a token for user_id, defaulting the lifetime to the configured one."""
    if not settings.jwt_secret:
        raise ValueError("JWT_SECRET is not set")

    lifetime = minutes if minutes is not None else settings.access_token_expire_minutes
    return create_access_token(
        user_id,
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expires_in=timedelta(minutes=lifetime),
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Issue a development bearer token")
    parser.add_argument("user_id", type=UUID, help="User UUID to put in the sub claim")
    parser.add_argument(
        "--minutes",
        type=int,
        default=None,
        help="Token lifetime in minutes (default: ACCESS_TOKEN_EXPIRE_MINUTES)",
    )
    args = parser.parse_args()

    try:
        token = issue_token(get_settings(), args.user_id, args.minutes)
    except ValueError as e:
        print(e, file=sys.stderr)
        return 1

    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())

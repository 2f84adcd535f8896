"""
Change a user's role (operator tool; the HTTP API never changes roles).

Usage:
    python scripts/promote_admin.py --email alice@example.com
    python scripts/promote_admin.py --email alice@example.com --role user

Reads DATABASE_URL (and the rest of the settings) from the environment or
the .env file, like the server.
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from sqlalchemy import func, select

from petservices.config import settings
from petservices.database import Database
from petservices.exceptions import NotFoundError, PetServicesError
from petservices.models.user import ROLE_ADMIN, ROLES, User
from petservices.services.auth_service import AuthService


async def promote(database: Database, auth_service: AuthService, email: str, role: str) -> User:
    async with database.transaction() as session:
        result = await session.execute(
            select(User).where(func.lower(User.email) == auth_service.normalize_email(email))
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError(resource="user", resource_id=email)
        return await auth_service.set_role(session, user.id, role)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Set the role of a PetServices user")
    parser.add_argument("--email", required=True, help="Email of the account to change")
    parser.add_argument("--role", default=ROLE_ADMIN, choices=ROLES, help="New role (default: admin)")
    args = parser.parse_args(argv)

    async def run() -> int:
        database = Database.from_settings(settings)
        try:
            user = await promote(database, AuthService.from_settings(settings), args.email, args.role)
        except PetServicesError as e:
            print(f"[!] {e.message}", file=sys.stderr)
            return 1
        finally:
            await database.dispose()
        print(f"User {user.id} ({user.email}) is now '{user.role}'")
        return 0

    return asyncio.run(run())


if __name__ == "__main__":
    sys.exit(main())

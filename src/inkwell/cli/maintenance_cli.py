"""
Command-line interface for database maintenance.

Commands:
- `create-indexes` - build the users/posts/comments indexes
- `migrate-users` - backfill profile defaults on users created before those fields existed
- `create-admin` - create an admin account, or promote an existing user to admin
"""

import argparse
import asyncio
import sys
from typing import Optional

from pydantic import ValidationError

from inkwell.database import USERS_COLLECTION, DatabaseManager, UserRepository, db_manager
from inkwell.managers.logging_manager import get_logger
from inkwell.models.user_models import UserRole, new_user_document
from inkwell.routes.auth.models import SignupRequest
from inkwell.routes.auth.services import hash_password

logger = get_logger(prefix="[MaintenanceCLI]")


class MaintenanceCLI:
    """Maintenance commands run against the configured MongoDB."""

    def __init__(self, manager: Optional[DatabaseManager] = None):
        self.manager = manager or db_manager

    def _users(self) -> UserRepository:
        return UserRepository(self.manager.get_collection(USERS_COLLECTION))

    async def create_indexes(self) -> bool:
        try:
            await self.manager.connect()
            await self.manager.create_indexes()
            logger.info("Indexes created")
            return True
        except Exception as e:
            logger.error("Failed to create indexes: %s", e, exc_info=True)
            return False
        finally:
            await self.manager.disconnect()

    async def migrate_users(self) -> bool:
        try:
            await self.manager.connect()
            updated = await self._users().backfill_profile_defaults()
            logger.info("Migration complete: %d users updated", updated)
            return True
        except Exception as e:
            logger.error("User migration failed: %s", e, exc_info=True)
            return False
        finally:
            await self.manager.disconnect()

    async def create_admin(self, username: str, email: str, password: str) -> bool:
        """
        Create an admin user, or promote the user already holding `email` or `username`.

        Returns:
            True if an admin now exists for the given identity, False otherwise
        """
        try:
            request = SignupRequest(username=username, email=email, password=password)
        except ValidationError as e:
            for error in e.errors():
                logger.error("Invalid %s: %s", ".".join(str(p) for p in error["loc"]), error["msg"])
            return False

        try:
            await self.manager.connect()
            users = self._users()
            existing = await users.find_by_email(request.email) or await users.find_by_username(request.username)
            if existing:
                if existing.get("role") == UserRole.ADMIN.value:
                    logger.info("User %s is already an admin", existing["username"])
                else:
                    await users.update_fields(existing["_id"], {"role": UserRole.ADMIN.value})
                    logger.info("Promoted %s to admin", existing["username"])
                return True

            document = new_user_document(
                request.username, request.email, hash_password(request.password), role=UserRole.ADMIN.value
            )
            created = await users.create(document)
            logger.info("Created admin %s (%s)", created["username"], created["_id"])
            return True
        except Exception as e:
            logger.error("Failed to create admin: %s", e, exc_info=True)
            return False
        finally:
            await self.manager.disconnect()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inkwell-admin",
        description="InkWell database maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("create-indexes", help="Create MongoDB indexes")
    subparsers.add_parser("migrate-users", help="Backfill profile defaults on existing users")

    admin_parser = subparsers.add_parser("create-admin", help="Create or promote an admin user")
    admin_parser.add_argument("--username", required=True, help="Admin username")
    admin_parser.add_argument("--email", required=True, help="Admin email address")
    admin_parser.add_argument("--password", required=True, help="Password for a newly created admin")

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    cli = MaintenanceCLI()

    if args.command == "create-indexes":
        success = asyncio.run(cli.create_indexes())
    elif args.command == "migrate-users":
        success = asyncio.run(cli.migrate_users())
    elif args.command == "create-admin":
        success = asyncio.run(cli.create_admin(username=args.username, email=args.email, password=args.password))
    else:
        parser.print_help()
        sys.exit(1)

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

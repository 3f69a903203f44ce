from unittest.mock import AsyncMock, MagicMock, patch

from bson import ObjectId
import pytest

from inkwell.cli.maintenance_cli import MaintenanceCLI, build_parser, main
from inkwell.routes.auth.services import verify_password


@pytest.fixture
def manager():
    mock = MagicMock()
    mock.connect = AsyncMock()
    mock.disconnect = AsyncMock()
    mock.create_indexes = AsyncMock()
    return mock


@pytest.fixture
def users():
    repo = MagicMock()
    repo.find_by_email = AsyncMock(return_value=None)
    repo.find_by_username = AsyncMock(return_value=None)
    repo.update_fields = AsyncMock()
    repo.create = AsyncMock(side_effect=lambda document: {**document, "_id": ObjectId()})
    repo.backfill_profile_defaults = AsyncMock(return_value=3)
    return repo


def test_parser_requires_admin_fields():
    args = build_parser().parse_args(
        ["create-admin", "--username", "root", "--email", "root@example.com", "--password", "secret1"]
    )
    assert (args.command, args.username, args.email) == ("create-admin", "root", "root@example.com")

    with pytest.raises(SystemExit):
        build_parser().parse_args(["create-admin", "--username", "root"])


def test_main_without_command_exits_nonzero():
    with pytest.raises(SystemExit) as exc_info:
        main([])
    assert exc_info.value.code == 1


@pytest.mark.asyncio
async def test_create_indexes(manager):
    assert await MaintenanceCLI(manager).create_indexes() is True
    manager.create_indexes.assert_awaited_once()
    manager.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_indexes_reports_failure(manager):
    manager.connect.side_effect = ConnectionError("mongo down")

    assert await MaintenanceCLI(manager).create_indexes() is False
    manager.disconnect.assert_awaited_once()


@pytest.mark.asyncio
async def test_migrate_users(manager, users):
    cli = MaintenanceCLI(manager)
    with patch.object(MaintenanceCLI, "_users", return_value=users):
        assert await cli.migrate_users() is True
    users.backfill_profile_defaults.assert_awaited_once()


@pytest.mark.asyncio
async def test_create_admin_creates_new_user(manager, users):
    cli = MaintenanceCLI(manager)
    with patch.object(MaintenanceCLI, "_users", return_value=users):
        assert await cli.create_admin("root", "Root@Example.com", "secret1") is True

    document = users.create.call_args[0][0]
    assert document["role"] == "admin"
    assert document["email"] == "root@example.com"
    assert verify_password("secret1", document["password"])


@pytest.mark.asyncio
async def test_create_admin_promotes_existing_user(manager, users):
    existing = {"_id": ObjectId(), "username": "root", "role": "author"}
    users.find_by_email.return_value = existing
    cli = MaintenanceCLI(manager)

    with patch.object(MaintenanceCLI, "_users", return_value=users):
        assert await cli.create_admin("root", "root@example.com", "secret1") is True

    users.update_fields.assert_awaited_once_with(existing["_id"], {"role": "admin"})
    users.create.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_admin_rejects_weak_password(manager, users):
    cli = MaintenanceCLI(manager)
    with patch.object(MaintenanceCLI, "_users", return_value=users):
        assert await cli.create_admin("root", "root@example.com", "123") is False
    manager.connect.assert_not_awaited()

"""Tests for the account directory and game catalog."""

import pytest

from gameshare.db import AccountCreate, AccountRole, GameCreate
from gameshare.errors import ConflictError, NotFoundError, ValidationError


class TestAccountDirectory:
    """Tests for AccountDirectory."""

    def test_create_and_resolve(self, directory, owner, clock):
        resolved = directory.resolve_account(owner.id)

        assert resolved.display_name == "Olivia Owner"
        assert resolved.role == AccountRole.GAME_OWNER
        assert resolved.is_game_owner
        assert resolved.created_at == clock.now()

    def test_duplicate_email_conflicts(self, directory, borrower):
        """Emails are unique regardless of case."""
        with pytest.raises(ConflictError):
            directory.create_account(AccountCreate(display_name="Twin", email="UMA@example.com"))

    def test_resolve_missing(self, directory):
        with pytest.raises(NotFoundError):
            directory.resolve_account(999)

    def test_find_by_email(self, directory, borrower):
        assert directory.find_by_email("uma@example.com").id == borrower.id
        assert directory.find_by_email("nobody@example.com") is None

    def test_list_by_role(self, directory, owner, borrower, stranger):
        assert [a.id for a in directory.list_accounts(AccountRole.GAME_OWNER)] == [owner.id]
        assert len(directory.list_accounts()) == 3


class TestCatalog:
    """Tests for Catalog."""

    def test_create_and_resolve(self, catalog, game, owner):
        resolved = catalog.resolve_game(game.id)

        assert resolved.name == "Carcassonne"
        assert resolved.owner_id == owner.id
        assert resolved.min_players == 2
        assert resolved.max_players == 5

    def test_plain_user_cannot_own_games(self, catalog, borrower):
        with pytest.raises(ValidationError, match="not a game owner"):
            catalog.create_game(GameCreate(name="Azul", owner_id=borrower.id))

    def test_unknown_owner(self, catalog):
        with pytest.raises(ValidationError):
            catalog.create_game(GameCreate(name="Azul", owner_id=999))

    def test_player_range(self, catalog, owner):
        with pytest.raises(ValidationError):
            catalog.create_game(GameCreate(name="Azul", owner_id=owner.id, min_players=5, max_players=2))

    def test_resolve_missing(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.resolve_game(999)

    def test_list_games(self, catalog, game, owner):
        catalog.create_game(GameCreate(name="Azul", owner_id=owner.id))

        assert [g.name for g in catalog.list_games()] == ["Azul", "Carcassonne"]
        assert len(catalog.list_games(owner_id=owner.id)) == 2
        assert catalog.list_games(owner_id=12345) == []

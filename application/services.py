from __future__ import annotations

from typing import Optional

from application.player import Player
from config.settings import StorageConfig
from domain.models import DISCONNECTED, PlayerRecord
from domain.repositories import PlayerRepository
from infrastructure.db.gateway import PostgresStorageGateway, create_gateway
from infrastructure.db.player_repository_postgres import PostgresPlayerRepository
from infrastructure.db.player_repository_sqlite import SqlitePlayerRepository


STARTING_CHIPS = 1000


def build_player_repository(config: StorageConfig) -> PlayerRepository:
    """
    Create the gateway for `config.backend` and the repository on top of it.

    Both repositories create the `player` table on first use.
    """

    gateway = create_gateway(config)
    if isinstance(gateway, PostgresStorageGateway):
        return PostgresPlayerRepository(gateway)
    return SqlitePlayerRepository(gateway)


def open_player(player_id: int, repository: PlayerRepository) -> Optional[Player]:
    """Return a loaded `Player`, or None if no row exists for `player_id`."""

    player = Player(player_id, repository)
    if not player.load_information():
        return None
    return player


def register_player(
    player_id: int,
    username: str,
    repository: PlayerRepository,
    chips: int = STARTING_CHIPS,
) -> Player:
    """
    Insert a fresh row for a new player and return it loaded.

    Ids are assigned by the caller. The new row starts disconnected, with
    no bid and zeroed counters.
    """

    if chips < 0:
        raise ValueError("Starting chips must not be negative.")

    repository.add_player(
        PlayerRecord(
            id=player_id,
            username=username,
            chips=chips,
            connected=DISCONNECTED,
        )
    )

    player = Player(player_id, repository)
    player.load_information()
    return player

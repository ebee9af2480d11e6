from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from domain.errors import ConstraintViolation, StorageError
from domain.models import MISSING_BID, BidState, PlayerRecord
from domain.repositories import PlayerRepository
from infrastructure.db.gateway import SqliteStorageGateway


class SqlitePlayerRepository(PlayerRepository):
    """
    SQLite-backed implementation of `PlayerRepository`.

    This repository owns the `player` table and maps rows to the
    `PlayerRecord` domain model. It is self-initialising: the table is
    created if needed. Read-modify-write operations take the database
    write lock up front with `BEGIN IMMEDIATE`.
    """

    def __init__(self, gateway: SqliteStorageGateway) -> None:
        self._gateway = gateway
        self._ensure_table()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        conn = self._gateway.open_connection()
        try:
            yield conn
        except sqlite3.Error as e:
            self._gateway.log_error(f"Player query failed: {e}")
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()

    def _ensure_table(self) -> None:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS player (
                    ID INTEGER PRIMARY KEY,
                    username TEXT NOT NULL,
                    chips INTEGER NOT NULL DEFAULT 0,
                    current_bid INTEGER NOT NULL DEFAULT 0,
                    chips_won INTEGER NOT NULL DEFAULT 0,
                    chips_lost INTEGER NOT NULL DEFAULT 0,
                    games_won INTEGER NOT NULL DEFAULT 0,
                    games_lost INTEGER NOT NULL DEFAULT 0,
                    connected INTEGER NOT NULL DEFAULT 0,
                    needs_update INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> PlayerRecord:
        return PlayerRecord(
            id=int(row["ID"]),
            username=row["username"],
            chips=int(row["chips"]),
            current_bid=int(row["current_bid"]),
            chips_won=int(row["chips_won"]),
            chips_lost=int(row["chips_lost"]),
            games_won=int(row["games_won"]),
            games_lost=int(row["games_lost"]),
            connected=int(row["connected"]),
            needs_update=int(row["needs_update"]),
        )

    def get_player(self, player_id: int) -> Optional[PlayerRecord]:
        with self._connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT ID, username, chips, current_bid, chips_won, chips_lost,
                       games_won, games_lost, connected, needs_update
                FROM player
                WHERE ID = ?
                """,
                (player_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def add_player(self, record: PlayerRecord) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO player (ID, username, chips, current_bid, chips_won, chips_lost,
                                    games_won, games_lost, connected, needs_update)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.username,
                    record.chips,
                    record.current_bid,
                    record.chips_won,
                    record.chips_lost,
                    record.games_won,
                    record.games_lost,
                    record.connected,
                    record.needs_update,
                ),
            )

    def place_bid(self, player_id: int, amount: int) -> Optional[BidState]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT current_bid, chips FROM player WHERE ID = ?",
                (player_id,),
            ).fetchone()
            if not row:
                return None

            difference = amount - row["current_bid"]
            chips = row["chips"] - difference
            if chips < 0:
                raise ConstraintViolation(
                    f"Player {player_id} cannot bid {amount}: only {row['chips']} chips behind a bid of {row['current_bid']}"
                )

            conn.execute(
                "UPDATE player SET current_bid = ?, chips = ? WHERE ID = ?",
                (amount, chips, player_id),
            )
            return BidState(chips=chips, current_bid=amount)

    def reset_bid(self, player_id: int) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT current_bid FROM player WHERE ID = ?",
                (player_id,),
            ).fetchone()
            if not row:
                return MISSING_BID

            bid = int(row["current_bid"])
            conn.execute(
                "UPDATE player SET current_bid = 0, chips = chips + ? WHERE ID = ?",
                (bid, player_id),
            )
            return bid

    def remove_bid_chips(self, player_id: int) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT current_bid FROM player WHERE ID = ?",
                (player_id,),
            ).fetchone()
            if not row:
                return MISSING_BID

            conn.execute(
                "UPDATE player SET current_bid = 0, needs_update = 1 WHERE ID = ?",
                (player_id,),
            )
            return int(row["current_bid"])

    def _get_flag(self, column: str, player_id: int) -> Optional[bool]:
        with self._connection() as conn:
            row = conn.execute(
                f"SELECT {column} FROM player WHERE ID = ?",
                (player_id,),
            ).fetchone()
            if not row:
                return None
            return bool(row[0])

    def _set_flag(self, column: str, player_id: int, flag: int) -> None:
        value = int(flag)
        with self._transaction() as conn:
            conn.execute(
                f"UPDATE player SET {column} = ? WHERE ID = ?",
                (value, player_id),
            )

    def get_needs_update(self, player_id: int) -> Optional[bool]:
        return self._get_flag("needs_update", player_id)

    def set_needs_update(self, player_id: int, flag: int) -> None:
        self._set_flag("needs_update", player_id, flag)

    def get_connected(self, player_id: int) -> Optional[bool]:
        return self._get_flag("connected", player_id)

    def set_connected(self, player_id: int, flag: int) -> None:
        self._set_flag("connected", player_id, flag)

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import psycopg2

from domain.errors import ConstraintViolation, StorageError
from domain.models import MISSING_BID, BidState, PlayerRecord
from domain.repositories import PlayerRepository
from infrastructure.db.gateway import PostgresStorageGateway


_PLAYER_COLUMNS = (
    "id, username, chips, current_bid, chips_won, chips_lost, "
    "games_won, games_lost, connected, needs_update"
)


class PostgresPlayerRepository(PlayerRepository):
    """
    Postgres-backed implementation of `PlayerRepository`.

    Every call runs in its own transaction on a fresh connection. Rows that
    are read in order to be rewritten are locked with `SELECT ... FOR UPDATE`
    so that concurrent bids on the same player are serialised.
    """

    def __init__(self, gateway: PostgresStorageGateway) -> None:
        self._gateway = gateway
        self._ensure_table()

    @contextmanager
    def _transaction(self) -> Iterator:
        conn = self._gateway.open_connection()
        try:
            with conn.cursor() as cur:
                yield cur
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            self._gateway.log_error(f"Player query failed: {e}")
            raise StorageError(str(e)) from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _ensure_table(self) -> None:
        with self._transaction() as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS player (
                    id INTEGER PRIMARY KEY,
                    username TEXT NOT NULL,
                    chips INTEGER NOT NULL DEFAULT 0,
                    current_bid INTEGER NOT NULL DEFAULT 0,
                    chips_won INTEGER NOT NULL DEFAULT 0,
                    chips_lost INTEGER NOT NULL DEFAULT 0,
                    games_won INTEGER NOT NULL DEFAULT 0,
                    games_lost INTEGER NOT NULL DEFAULT 0,
                    connected SMALLINT NOT NULL DEFAULT 0,
                    needs_update SMALLINT NOT NULL DEFAULT 0
                )
                """
            )

    @staticmethod
    def _to_domain(row: tuple) -> PlayerRecord:
        return PlayerRecord(
            id=int(row[0]),
            username=row[1],
            chips=int(row[2]),
            current_bid=int(row[3]),
            chips_won=int(row[4]),
            chips_lost=int(row[5]),
            games_won=int(row[6]),
            games_lost=int(row[7]),
            connected=int(row[8]),
            needs_update=int(row[9]),
        )

    def get_player(self, player_id: int) -> Optional[PlayerRecord]:
        with self._transaction() as cur:
            cur.execute(
                f"SELECT {_PLAYER_COLUMNS} FROM player WHERE id = %s",
                (player_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def add_player(self, record: PlayerRecord) -> None:
        with self._transaction() as cur:
            cur.execute(
                f"""
                INSERT INTO player ({_PLAYER_COLUMNS})
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
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
        with self._transaction() as cur:
            cur.execute(
                "SELECT current_bid, chips FROM player WHERE id = %s FOR UPDATE",
                (player_id,),
            )
            row = cur.fetchone()
            if not row:
                return None

            current_bid, chips = int(row[0]), int(row[1])
            new_chips = chips - (amount - current_bid)
            if new_chips < 0:
                raise ConstraintViolation(
                    f"Player {player_id} cannot bid {amount}: only {chips} chips behind a bid of {current_bid}"
                )

            cur.execute(
                "UPDATE player SET current_bid = %s, chips = %s WHERE id = %s",
                (amount, new_chips, player_id),
            )
            return BidState(chips=new_chips, current_bid=amount)

    def reset_bid(self, player_id: int) -> int:
        with self._transaction() as cur:
            cur.execute(
                "SELECT current_bid FROM player WHERE id = %s FOR UPDATE",
                (player_id,),
            )
            row = cur.fetchone()
            if not row:
                return MISSING_BID

            bid = int(row[0])
            cur.execute(
                "UPDATE player SET current_bid = 0, chips = chips + %s WHERE id = %s",
                (bid, player_id),
            )
            return bid

    def remove_bid_chips(self, player_id: int) -> int:
        with self._transaction() as cur:
            cur.execute(
                "SELECT current_bid FROM player WHERE id = %s FOR UPDATE",
                (player_id,),
            )
            row = cur.fetchone()
            if not row:
                return MISSING_BID

            cur.execute(
                "UPDATE player SET current_bid = 0, needs_update = 1 WHERE id = %s",
                (player_id,),
            )
            return int(row[0])

    def _get_flag(self, column: str, player_id: int) -> Optional[bool]:
        with self._transaction() as cur:
            cur.execute(f"SELECT {column} FROM player WHERE id = %s", (player_id,))
            row = cur.fetchone()
            if not row:
                return None
            return bool(row[0])

    def _set_flag(self, column: str, player_id: int, flag: int) -> None:
        value = int(flag)
        with self._transaction() as cur:
            cur.execute(
                f"UPDATE player SET {column} = %s WHERE id = %s",
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

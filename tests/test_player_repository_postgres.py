import unittest
from unittest import mock

import psycopg2

from domain.errors import ConstraintViolation, StorageError
from domain.models import MISSING_BID, BidState, PlayerRecord
from infrastructure.db.gateway import PostgresStorageGateway
from infrastructure.db.player_repository_postgres import PostgresPlayerRepository


def _sql(call) -> str:
    return " ".join(call.args[0].split())


class PostgresPlayerRepositoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cur = mock.MagicMock()
        self.conn = mock.MagicMock()
        self.conn.cursor.return_value.__enter__.return_value = self.cur
        self.gateway = mock.Mock(spec=PostgresStorageGateway)
        self.gateway.open_connection.return_value = self.conn

        self.repo = PostgresPlayerRepository(self.gateway)
        self.conn.reset_mock()
        self.cur.reset_mock()
        self.gateway.reset_mock()
        self.conn.cursor.return_value.__enter__.return_value = self.cur
        self.gateway.open_connection.return_value = self.conn

    def assert_committed_and_closed(self):
        self.conn.commit.assert_called_once_with()
        self.conn.rollback.assert_not_called()
        self.conn.close.assert_called_once_with()

    def assert_rolled_back_and_closed(self):
        self.conn.commit.assert_not_called()
        self.conn.rollback.assert_called_once_with()
        self.conn.close.assert_called_once_with()

    def test_table_created_on_init(self):
        gateway = mock.Mock(spec=PostgresStorageGateway)
        gateway.open_connection.return_value = self.conn
        PostgresPlayerRepository(gateway)
        self.assertIn("CREATE TABLE IF NOT EXISTS player", _sql(self.cur.execute.call_args))
        self.assert_committed_and_closed()

    def test_get_player_maps_row(self):
        self.cur.fetchone.return_value = (3, "carol", 80, 20, 5, 6, 1, 2, 1, 0)
        record = self.repo.get_player(3)
        self.assertEqual(
            record,
            PlayerRecord(
                id=3,
                username="carol",
                chips=80,
                current_bid=20,
                chips_won=5,
                chips_lost=6,
                games_won=1,
                games_lost=2,
                connected=1,
                needs_update=0,
            ),
        )
        self.assertEqual(self.cur.execute.call_args.args[1], (3,))
        self.assert_committed_and_closed()

    def test_get_player_missing(self):
        self.cur.fetchone.return_value = None
        self.assertIsNone(self.repo.get_player(3))
        self.assert_committed_and_closed()

    def test_place_bid_locks_row_then_writes(self):
        self.cur.fetchone.return_value = (10, 90)
        self.assertEqual(self.repo.place_bid(3, 30), BidState(chips=70, current_bid=30))

        select, update = self.cur.execute.call_args_list
        self.assertEqual(_sql(select), "SELECT current_bid, chips FROM player WHERE id = %s FOR UPDATE")
        self.assertEqual(select.args[1], (3,))
        self.assertEqual(_sql(update), "UPDATE player SET current_bid = %s, chips = %s WHERE id = %s")
        self.assertEqual(update.args[1], (30, 70, 3))
        self.assert_committed_and_closed()

    def test_place_bid_missing_row(self):
        self.cur.fetchone.return_value = None
        self.assertIsNone(self.repo.place_bid(3, 30))
        self.assertEqual(self.cur.execute.call_count, 1)
        self.assert_committed_and_closed()

    def test_place_bid_constraint_violation_rolls_back(self):
        self.cur.fetchone.return_value = (0, 20)
        with self.assertRaises(ConstraintViolation):
            self.repo.place_bid(3, 30)
        self.assertEqual(self.cur.execute.call_count, 1)
        self.assert_rolled_back_and_closed()
        self.gateway.log_error.assert_not_called()

    def test_reset_bid(self):
        self.cur.fetchone.return_value = (25,)
        self.assertEqual(self.repo.reset_bid(3), 25)

        select, update = self.cur.execute.call_args_list
        self.assertEqual(_sql(select), "SELECT current_bid FROM player WHERE id = %s FOR UPDATE")
        self.assertEqual(_sql(update), "UPDATE player SET current_bid = 0, chips = chips + %s WHERE id = %s")
        self.assertEqual(update.args[1], (25, 3))
        self.assert_committed_and_closed()

    def test_reset_bid_missing_row(self):
        self.cur.fetchone.return_value = None
        self.assertEqual(self.repo.reset_bid(3), MISSING_BID)
        self.assert_committed_and_closed()

    def test_remove_bid_chips(self):
        self.cur.fetchone.return_value = (40,)
        self.assertEqual(self.repo.remove_bid_chips(3), 40)

        select, update = self.cur.execute.call_args_list
        self.assertEqual(_sql(select), "SELECT current_bid FROM player WHERE id = %s FOR UPDATE")
        self.assertEqual(_sql(update), "UPDATE player SET current_bid = 0, needs_update = 1 WHERE id = %s")
        self.assertEqual(update.args[1], (3,))
        self.assert_committed_and_closed()

    def test_remove_bid_chips_missing_row(self):
        self.cur.fetchone.return_value = None
        self.assertEqual(self.repo.remove_bid_chips(3), MISSING_BID)
        self.assert_committed_and_closed()

    def test_flags(self):
        self.cur.fetchone.return_value = (1,)
        self.assertTrue(self.repo.get_connected(3))
        self.assertEqual(_sql(self.cur.execute.call_args), "SELECT connected FROM player WHERE id = %s")

        self.repo.set_needs_update(3, True)
        self.assertEqual(_sql(self.cur.execute.call_args), "UPDATE player SET needs_update = %s WHERE id = %s")
        self.assertEqual(self.cur.execute.call_args.args[1], (1, 3))

    def test_driver_error_is_logged_and_wrapped(self):
        self.cur.execute.side_effect = psycopg2.Error("deadlock detected")
        with self.assertRaises(StorageError) as ctx:
            self.repo.reset_bid(3)
        self.assertIsInstance(ctx.exception.__cause__, psycopg2.Error)
        self.assert_rolled_back_and_closed()
        self.gateway.log_error.assert_called_once()
        self.assertIn("deadlock detected", self.gateway.log_error.call_args.args[0])

    def test_commit_failure_is_wrapped(self):
        self.cur.fetchone.return_value = (10, 90)
        self.conn.commit.side_effect = psycopg2.Error("could not serialize access")
        with self.assertRaises(StorageError):
            self.repo.place_bid(3, 30)
        self.conn.rollback.assert_called_once_with()
        self.conn.close.assert_called_once_with()

    def test_non_numeric_flag_never_opens_a_connection(self):
        with self.assertRaises(ValueError):
            self.repo.set_connected(3, "yes")
        self.gateway.open_connection.assert_not_called()


if __name__ == "__main__":
    unittest.main()

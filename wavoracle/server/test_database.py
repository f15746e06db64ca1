#!/usr/bin/env python3
"""Connection lifecycle and schema setup for the sqlite helpers."""

from __future__ import annotations

import os
import sqlite3
import tempfile
import threading
import unittest

from wavoracle.server.database import configure_database, get_db_connection, initialize_database


class DatabaseHelperTests(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.TemporaryDirectory()
        configure_database(os.path.join(self._tmpdir.name, "cache.db"))
        initialize_database()

    def tearDown(self):
        self._tmpdir.cleanup()

    def test_connection_is_closed_after_each_block(self):
        with get_db_connection() as conn:
            conn.execute("SELECT 1").fetchone()
        with self.assertRaises(sqlite3.ProgrammingError):
            conn.execute("SELECT 1")

    def test_worker_threads_do_not_leave_connections_open(self):
        handed_out = []

        def work():
            with get_db_connection() as conn:
                conn.execute("UPDATE server_stats SET cache_hits = cache_hits + 1 WHERE id = 1")
                handed_out.append(conn)

        threads = [threading.Thread(target=work) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(handed_out), 8)
        for conn in handed_out:
            with self.assertRaises(sqlite3.ProgrammingError):
                conn.execute("SELECT 1")
        with get_db_connection() as conn:
            hits = conn.execute("SELECT cache_hits FROM server_stats WHERE id = 1").fetchone()[0]
        self.assertEqual(hits, 8)

    def test_failed_block_rolls_back(self):
        with self.assertRaises(RuntimeError):
            with get_db_connection() as conn:
                conn.execute("UPDATE server_stats SET cache_misses = 42 WHERE id = 1")
                raise RuntimeError("abort")
        with get_db_connection() as conn:
            misses = conn.execute("SELECT cache_misses FROM server_stats WHERE id = 1").fetchone()[0]
        self.assertEqual(misses, 0)

    def test_initialize_is_idempotent(self):
        initialize_database()
        with get_db_connection() as conn:
            rows = conn.execute("SELECT COUNT(*) FROM server_stats").fetchone()[0]
        self.assertEqual(rows, 1)


if __name__ == "__main__":
    unittest.main()

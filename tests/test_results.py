import sqlite3
import unittest

from shopdb.results import (
    DatabaseClosedError,
    ErrorKind,
    WriteResult,
    classify,
)


class ClassifyTestCase(unittest.TestCase):
    def test_driver_errors(self):
        cases = [
            (sqlite3.IntegrityError("UNIQUE constraint failed: Users.email"), ErrorKind.CONSTRAINT),
            (sqlite3.IntegrityError("FOREIGN KEY constraint failed"), ErrorKind.CONSTRAINT),
            (sqlite3.OperationalError("database is locked"), ErrorKind.LOCK_TIMEOUT),
            (sqlite3.OperationalError("unable to open database file"), ErrorKind.CONNECTION),
            (sqlite3.OperationalError("no such table: Users"), ErrorKind.UNKNOWN),
            (sqlite3.ProgrammingError("Cannot operate on a closed database."), ErrorKind.CONNECTION),
            (ValueError("Connection closed"), ErrorKind.CONNECTION),
            (DatabaseClosedError("database x is closed"), ErrorKind.CONNECTION),
            (ValueError("something else"), ErrorKind.UNKNOWN),
        ]
        for exc, kind in cases:
            self.assertEqual(classify(exc), kind, repr(exc))


class WriteResultTestCase(unittest.TestCase):
    def test_success(self):
        res = WriteResult.success(rowcount=1, lastrowid=7)
        self.assertTrue(res)
        self.assertEqual(res.kind, ErrorKind.NONE)
        self.assertIsNone(res.error)
        self.assertEqual((res.rowcount, res.lastrowid), (1, 7))

    def test_failure(self):
        res = WriteResult.failure(ErrorKind.NOT_FOUND, "no such row")
        self.assertFalse(res)
        self.assertEqual(res.kind, ErrorKind.NOT_FOUND)
        self.assertEqual(res.error, "no such row")
        self.assertEqual(res.rowcount, 0)

        with self.assertRaises(ValueError):
            WriteResult.failure(ErrorKind.NONE, "not a failure")

    def test_from_exception(self):
        res = WriteResult.from_exception(sqlite3.OperationalError("database is locked"))
        self.assertEqual(res.kind, ErrorKind.LOCK_TIMEOUT)
        self.assertEqual(res.error, "database is locked")

        res = WriteResult.from_exception(DatabaseClosedError())
        self.assertEqual(res.kind, ErrorKind.CONNECTION)
        self.assertEqual(res.error, "DatabaseClosedError")


if __name__ == "__main__":
    unittest.main()

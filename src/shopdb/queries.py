# src/shopdb/queries.py
from __future__ import annotations

import sqlite3
from datetime import date, datetime
from typing import Awaitable, Callable, List, Optional, Sequence

import aiosqlite

from shopdb import models
from shopdb.database import Database, transaction
from shopdb.results import ErrorKind, ShopDBError, WriteResult
from shopdb.utils.logger import get_logger

_logger = get_logger(__name__)

# errors a write turns into a failed WriteResult; anything else is a bug and propagates
WRITE_ERRORS = (sqlite3.Error, ShopDBError, ValueError)


# ---------------------------
# Row helpers
# ---------------------------


def _to_date(val) -> Optional[date]:
    if val is None or isinstance(val, date):
        return val
    return date.fromisoformat(str(val)[:10])


def _to_datetime(val) -> Optional[datetime]:
    if val is None or isinstance(val, datetime):
        return val
    return datetime.fromisoformat(str(val))


def _iso(val: Optional[date]) -> Optional[str]:
    return val.isoformat() if val is not None else None


def _like(search: str) -> str:
    """Lowercased LIKE pattern matching ``search`` anywhere, wildcards taken literally."""
    escaped = (
        (search or "")
        .lower()
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return f"%{escaped}%"


def _to_user(row) -> models.UserInfo:
    return models.UserInfo(
        userid=row["userid"],
        email=row["email"],
        firstname=row["firstname"],
        lastname=row["lastname"],
        dob=_to_date(row["dob"]),
        password=row["password"],
    )


def _to_shop(row) -> models.ShopInfo:
    return models.ShopInfo(
        shopid=row["shopid"],
        shopname=row["shopname"],
        establishdate=_to_date(row["establishdate"]),
        description=row["description"],
        ownerid=row["ownerid"],
        ownername=row["ownername"],
    )


def _to_product(row) -> models.ProductInfo:
    return models.ProductInfo(
        productid=row["productid"],
        shopid=row["shopid"],
        name=row["name"],
        price=float(row["price"]),
        quantity=int(row["quantity"]),
        description=row["description"],
        version=int(row["version"]),
        shopname=row["shopname"],
    )


def _to_order(row) -> models.OrderInfo:
    return models.OrderInfo(
        orderid=row["orderid"],
        buyer=row["buyer"],
        shop=row["shop"],
        product=row["product"],
        quantity=int(row["quantity"]),
        ordertime=_to_datetime(row["ordertime"]),
        shopname=row["shopname"],
        productname=row["productname"],
        price=float(row["price"]),
    )


async def _fetch_all(db: Database, query: str, params: Sequence = ()) -> list:
    async with db.acquire() as conn:
        cur = await conn.execute(query, tuple(params))
        rows = await cur.fetchall()
        await cur.close()
    return rows


async def _exists(db: Database, query: str, params: Sequence) -> bool:
    async with db.acquire() as conn:
        cur = await conn.execute(query, tuple(params))
        row = await cur.fetchone()
        await cur.close()
    return bool(row[0])


async def _run_write(
    db: Database,
    action: str,
    body: Callable[[aiosqlite.Connection], Awaitable[WriteResult]],
    lock: bool = False,
) -> WriteResult:
    """Run ``body`` inside a transaction and report the outcome as a WriteResult.

    Database errors roll the transaction back, get logged, and come back as a
    failed result instead of an exception.
    """
    try:
        async with db.acquire() as conn:
            async with transaction(conn, lock=lock):
                result = await body(conn)
    except WRITE_ERRORS as e:
        _logger.exception(f"Failed to {action}: {e}")
        return WriteResult.from_exception(e)

    if result.ok:
        _logger.debug(f"{action}: {result}")
    else:
        _logger.warning(f"Failed to {action}: {result.kind.value} ({result.error})")
    return result


async def _execute_one(
    db: Database, action: str, query: str, params: Sequence, lock: bool = False
) -> WriteResult:
    """Single-statement write; a statement touching no row is NOT_FOUND."""

    async def body(conn: aiosqlite.Connection) -> WriteResult:
        cur = await conn.execute(query, tuple(params))
        rowcount, lastrowid = cur.rowcount, cur.lastrowid
        await cur.close()
        if rowcount == 0:
            return WriteResult.failure(ErrorKind.NOT_FOUND, f"{action}: no matching row")
        return WriteResult.success(rowcount=rowcount, lastrowid=lastrowid)

    return await _run_write(db, action, body, lock=lock)


# ---------------------------
# Users & Sellers
# ---------------------------


async def check_if_user_exists(db: Database, email: str) -> bool:
    """True if a user with the given email is registered."""
    exists = await _exists(
        db,
        'SELECT EXISTS (SELECT 1 FROM Users WHERE email = ?) AS "user_exists";',
        (email,),
    )
    _logger.debug(f"user {email!r} exists: {exists}")
    return exists


async def create_user(db: Database, info: models.SignUpInfo) -> WriteResult:
    """Insert a new user. ``lastrowid`` of the result is the new userid."""
    return await _execute_one(
        db,
        "create user",
        """
        INSERT INTO Users (email, firstname, lastname, dob, password)
        VALUES (?, ?, ?, ?, ?);
        """,
        (info.email, info.firstname, info.lastname, _iso(info.dob), info.password),
    )


async def get_user_info_by_email(db: Database, email: str) -> List[models.UserInfo]:
    rows = await _fetch_all(db, "SELECT * FROM UserInfoView WHERE email = ?;", (email,))
    users = [_to_user(row) for row in rows]
    _logger.debug(users)
    return users


async def get_user_info_by_id(db: Database, userid: int) -> List[models.UserInfo]:
    rows = await _fetch_all(
        db, "SELECT * FROM UserInfoView WHERE userid = ?;", (userid,)
    )
    users = [_to_user(row) for row in rows]
    _logger.debug(users)
    return users


async def get_user_by_email_and_password(
    db: Database, email: str, password: str
) -> List[models.UserInfo]:
    """Login lookup: the user whose email and password both match, if any.

    Passwords are compared exactly as stored; hashing is the caller's job.
    """
    rows = await _fetch_all(
        db,
        "SELECT * FROM UserInfoView WHERE email = ? AND password = ?;",
        (email, password),
    )
    users = [_to_user(row) for row in rows]
    _logger.debug(f"login for {email!r}: {len(users)} match(es)")
    return users


async def update_user_data(db: Database, user: models.UserInfo) -> WriteResult:
    """
    Overwrite the stored fields of ``user.userid`` with the given record.
    Takes the write lock first; only that one row is updated.
    """
    return await _execute_one(
        db,
        "update user info",
        """
        UPDATE Users
        SET (firstname, lastname, email, dob, password) = (?, ?, ?, ?, ?)
        WHERE userid = ?;
        """,
        (
            user.firstname,
            user.lastname,
            user.email,
            _iso(user.dob),
            user.password,
            user.userid,
        ),
        lock=True,
    )


async def make_seller(db: Database, userid: int) -> WriteResult:
    """Allow a user to own shops."""
    return await _execute_one(
        db,
        "add user as a seller",
        "INSERT INTO Sellers (sellerid) VALUES (?);",
        (userid,),
    )


async def is_seller(db: Database, userid: int) -> bool:
    return await _exists(
        db,
        "SELECT EXISTS (SELECT 1 FROM Sellers WHERE sellerid = ?);",
        (userid,),
    )


# ---------------------------
# Shops
# ---------------------------


async def get_all_shops_info(db: Database) -> List[models.ShopInfo]:
    rows = await _fetch_all(db, "SELECT * FROM ShopInfoView ORDER BY shopid;")
    shops = [_to_shop(row) for row in rows]
    _logger.debug(shops)
    return shops


async def get_shop_info(db: Database, shopid: int) -> List[models.ShopInfo]:
    rows = await _fetch_all(
        db, "SELECT * FROM ShopInfoView WHERE shopid = ?;", (shopid,)
    )
    shops = [_to_shop(row) for row in rows]
    _logger.debug(shops)
    return shops


async def get_shops_owned_by_user(db: Database, userid: int) -> List[models.ShopInfo]:
    rows = await _fetch_all(
        db,
        "SELECT * FROM ShopInfoView WHERE ownerid = ? ORDER BY shopid;",
        (userid,),
    )
    shops = [_to_shop(row) for row in rows]
    _logger.debug(shops)
    return shops


async def get_shops_like(db: Database, search: str) -> List[models.ShopInfo]:
    """Shops whose name contains ``search``, ignoring case."""
    rows = await _fetch_all(
        db,
        """
        SELECT * FROM ShopInfoView
        WHERE py_lower(shopname) LIKE ? ESCAPE '\\'
        ORDER BY shopid;
        """,
        (_like(search),),
    )
    shops = [_to_shop(row) for row in rows]
    _logger.debug(shops)
    return shops


async def create_shop(db: Database, info: models.CreateShopInfo) -> WriteResult:
    """Open a shop for ``info.ownerid``; the establish date is today's (UTC) date."""
    return await _execute_one(
        db,
        "create shop",
        """
        INSERT INTO Shops (shopname, establishdate, description, owner)
        VALUES (?, date('now'), ?, ?);
        """,
        (info.shopname, info.description, info.ownerid),
    )


# ---------------------------
# Products
# ---------------------------


async def get_all_products_of_a_shop(
    db: Database, shopid: int
) -> List[models.ProductInfo]:
    rows = await _fetch_all(
        db,
        "SELECT * FROM ProductInfoView WHERE shopid = ? ORDER BY productid;",
        (shopid,),
    )
    products = [_to_product(row) for row in rows]
    _logger.debug(products)
    return products


async def get_product(
    db: Database, shopid: int, productid: int
) -> List[models.ProductInfo]:
    rows = await _fetch_all(
        db,
        "SELECT * FROM ProductInfoView WHERE shopid = ? AND productid = ?;",
        (shopid, productid),
    )
    products = [_to_product(row) for row in rows]
    _logger.debug(products)
    return products


async def get_products_of_shop_like(
    db: Database, shopid: int, search: str
) -> List[models.ProductInfo]:
    """Products of one shop whose name contains ``search``, ignoring case."""
    rows = await _fetch_all(
        db,
        """
        SELECT * FROM ProductInfoView
        WHERE shopid = ? AND py_lower(name) LIKE ? ESCAPE '\\'
        ORDER BY productid;
        """,
        (shopid, _like(search)),
    )
    products = [_to_product(row) for row in rows]
    _logger.debug(products)
    return products


async def create_product(db: Database, info: models.CreateProductInfo) -> WriteResult:
    if info.quantity < 0:
        return WriteResult.failure(
            ErrorKind.VALIDATION, f"quantity cannot be negative: {info.quantity}"
        )
    return await _execute_one(
        db,
        "create product",
        """
        INSERT INTO Products (shopid, price, name, quantity, description)
        VALUES (?, ?, ?, ?, ?);
        """,
        (info.shopid, info.price, info.name, info.quantity, info.description),
    )


async def set_product_quantity(
    db: Database,
    shopid: int,
    productid: int,
    quantity: int,
    expected_version: Optional[int] = None,
) -> WriteResult:
    """
    Set the stock quantity of one product.

    The write lock is taken before the update, so concurrent calls apply one
    after the other. With ``expected_version`` the update only happens if the
    product is still at that version (CONFLICT otherwise); every applied
    update bumps the version by one.
    """
    if quantity < 0:
        return WriteResult.failure(
            ErrorKind.VALIDATION, f"quantity cannot be negative: {quantity}"
        )

    async def body(conn: aiosqlite.Connection) -> WriteResult:
        query = """
            UPDATE Products
            SET quantity = ?, version = version + 1
            WHERE shopid = ? AND productid = ?
            """
        params = [quantity, shopid, productid]
        if expected_version is not None:
            query += " AND version = ?"
            params.append(expected_version)
        cur = await conn.execute(query + ";", tuple(params))
        rowcount = cur.rowcount
        await cur.close()
        if rowcount:
            return WriteResult.success(rowcount=rowcount)

        cur = await conn.execute(
            "SELECT version FROM Products WHERE shopid = ? AND productid = ?;",
            (shopid, productid),
        )
        row = await cur.fetchone()
        await cur.close()
        if row is None:
            return WriteResult.failure(
                ErrorKind.NOT_FOUND, f"no product {productid} in shop {shopid}"
            )
        return WriteResult.failure(
            ErrorKind.CONFLICT,
            f"product {productid} is at version {row[0]}, expected {expected_version}",
        )

    return await _run_write(db, "update product quantity", body, lock=True)


# ---------------------------
# Orders
# ---------------------------


async def get_users_orders(db: Database, userid: int) -> List[models.OrderInfo]:
    rows = await _fetch_all(
        db,
        "SELECT * FROM OrdersInfoView WHERE buyer = ? ORDER BY ordertime, orderid;",
        (userid,),
    )
    orders = [_to_order(row) for row in rows]
    _logger.debug(orders)
    return orders


async def create_order(db: Database, info: models.CreateOrderInfo) -> WriteResult:
    """Record an order; the order time is the database's current timestamp."""
    if info.quantity <= 0:
        return WriteResult.failure(
            ErrorKind.VALIDATION, f"order quantity must be positive: {info.quantity}"
        )
    return await _execute_one(
        db,
        "create new order",
        """
        INSERT INTO Orders (buyer, shop, product, quantity, ordertime)
        VALUES (?, ?, ?, ?, CURRENT_TIMESTAMP);
        """,
        (info.userid, info.shopid, info.productid, info.quantity),
    )

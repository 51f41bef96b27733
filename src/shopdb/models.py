# provide dataclass models for view rows and write inputs

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

# ---------------------------
# Rows read from the views
# ---------------------------


@dataclass(frozen=True)
class UserInfo:
    userid: int
    email: str
    firstname: str
    lastname: str
    dob: Optional[date]
    password: str


@dataclass(frozen=True)
class ShopInfo:
    shopid: int
    shopname: str
    establishdate: date
    description: Optional[str]
    ownerid: int
    ownername: str  # "first last" of the owner


@dataclass(frozen=True)
class ProductInfo:
    productid: int
    shopid: int
    name: str
    price: float
    quantity: int
    description: Optional[str]
    version: int  # bumped on every quantity update
    shopname: str


@dataclass(frozen=True)
class OrderInfo:
    orderid: int
    buyer: int
    shop: int
    product: int
    quantity: int
    ordertime: datetime
    shopname: str
    productname: str
    price: float  # current unit price of the product


# ---------------------------
# Write inputs
# ---------------------------


@dataclass(frozen=True)
class SignUpInfo:
    email: str
    firstname: str
    lastname: str
    dob: Optional[date]
    password: str


@dataclass(frozen=True)
class CreateShopInfo:
    shopname: str
    description: Optional[str]
    ownerid: int


@dataclass(frozen=True)
class CreateProductInfo:
    shopid: int
    name: str
    price: float
    quantity: int
    description: Optional[str] = None


@dataclass(frozen=True)
class CreateOrderInfo:
    userid: int
    shopid: int
    productid: int
    quantity: int

"""
Database models for seller credentials and product ownership, plus the
request/response models of the HTTP surface.
"""

import datetime
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from marketplace_split.core.database import Base


def _id_to_str(value: Any) -> Any:
    # Platform ids arrive as JSON numbers or strings.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


PlatformId = Annotated[Optional[str], BeforeValidator(_id_to_str)]


class Seller(Base):
    """
    Represents a seller and the Mercado Pago credentials obtained through OAuth.

    Attributes:
        seller_id (str): Identifier assigned by the platform (not by Mercado Pago).
        access_token (str | None): Token used to act on the seller's account.
        refresh_token (str | None): Token that can renew the access token.
        connected_at (datetime | None): Last time the tokens were saved.
    """

    __tablename__ = "sellers"

    seller_id: Mapped[str] = mapped_column(String(255), primary_key=True, index=True)
    access_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    connected_at: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)


class ProductMapping(Base):
    """
    Maps a platform product to the seller who owns it.

    Attributes:
        product_id (str): Platform product identifier.
        seller_id (str): Platform seller identifier.
    """

    __tablename__ = "product_mappings"

    product_id: Mapped[str] = mapped_column(String(255), primary_key=True, index=True)
    seller_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)


class PreferenceCreate(BaseModel):
    """
    Checkout request sent by the platform frontend.

    Every field is optional at the parsing level; completeness and the
    positive amount are checked by the preference builder so that the caller
    gets an ``invalid_request`` error rather than a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    product_id: PlatformId = Field(None, alias="productId")
    payer_email: Optional[str] = Field(None, alias="payerEmail")
    total_amount: Optional[float] = Field(None, alias="totalAmount")
    order_id: PlatformId = Field(None, alias="orderId")


class PreferenceCreated(BaseModel):
    """Checkout response: where to send the buyer, and the preference id."""

    checkout_url: str
    preference_id: str


class ProductSync(BaseModel):
    """Product ownership update pushed by the platform's main backend."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: PlatformId = Field(None, alias="productId")
    seller_id: PlatformId = Field(None, alias="sellerId")
    internal_api_key: Optional[str] = None

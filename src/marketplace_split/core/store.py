"""Credential store: seller tokens and product ownership on top of SQLAlchemy.

Every public method is a coroutine; the session work itself runs in a worker
thread so a slow database never stalls the event loop.
"""

import datetime
import logging
from typing import Callable, Optional, TypeVar

import anyio
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from marketplace_split.core.errors import StoreUnavailable
from marketplace_split.core.models import ProductMapping, Seller

logger = logging.getLogger("store")

T = TypeVar("T")


class CredentialStore:
    """Lookup and upsert operations over the ``sellers`` and ``product_mappings`` tables."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    async def _run(self, operation: Callable[[Session], T]) -> T:
        def _in_session() -> T:
            db = self._session_factory()
            try:
                return operation(db)
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Credential store error: %s: %s", type(e).__name__, str(e))
                raise StoreUnavailable(f"Credential store error: {type(e).__name__}") from e
            finally:
                db.close()

        return await anyio.to_thread.run_sync(_in_session)

    async def get_token(self, product_id: str) -> Optional[str]:
        """
        Return the access token of the seller owning ``product_id``.

        Returns None when the product has no mapping, the mapped seller does
        not exist, or the seller has no (or an empty) token.
        """

        def _get_token(db: Session) -> Optional[str]:
            row = (
                db.query(Seller.access_token)
                .join(ProductMapping, ProductMapping.seller_id == Seller.seller_id)
                .filter(ProductMapping.product_id == product_id)
                .first()
            )
            if row is None:
                logger.warning("No seller mapping found for product: %s", product_id)
                return None
            if not row.access_token:
                logger.warning("Seller for product %s has no stored token", product_id)
                return None
            return row.access_token

        return await self._run(_get_token)

    async def upsert_seller(self, seller_id: str) -> None:
        """Create an empty seller row if it does not exist; never touches tokens."""

        def _upsert_seller(db: Session) -> None:
            if db.get(Seller, seller_id) is None:
                db.add(Seller(seller_id=seller_id))
                db.commit()
                logger.info("Created seller placeholder: %s", seller_id)

        await self._run(_upsert_seller)

    async def upsert_mapping(self, product_id: str, seller_id: str) -> None:
        """Map ``product_id`` to ``seller_id``, re-pointing an existing mapping."""

        def _upsert_mapping(db: Session) -> None:
            mapping = db.get(ProductMapping, product_id)
            if mapping is None:
                db.add(ProductMapping(product_id=product_id, seller_id=seller_id))
            else:
                mapping.seller_id = seller_id
            db.commit()

        await self._run(_upsert_mapping)

    async def save_tokens(
        self, seller_id: str, access_token: str, refresh_token: Optional[str]
    ) -> None:
        """Insert or overwrite the seller's tokens; the last save wins."""

        def _save_tokens(db: Session) -> None:
            seller = db.get(Seller, seller_id)
            if seller is None:
                logger.info("Creating new seller: %s", seller_id)
                seller = Seller(seller_id=seller_id)
                db.add(seller)
            else:
                logger.info("Updating tokens for existing seller: %s", seller_id)
            seller.access_token = access_token
            seller.refresh_token = refresh_token
            seller.connected_at = datetime.datetime.now(datetime.UTC).replace(tzinfo=None)
            db.commit()

        await self._run(_save_tokens)

    async def get_seller(self, seller_id: str) -> Optional[Seller]:
        """Return a detached copy of the seller row, or None."""

        def _get_seller(db: Session) -> Optional[Seller]:
            seller = db.get(Seller, seller_id)
            if seller is not None:
                db.expunge(seller)
            return seller

        return await self._run(_get_seller)

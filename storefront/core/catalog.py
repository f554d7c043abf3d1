"""Product catalog: admin maintenance and storefront queries."""
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

import structlog
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import InvalidProductError, ProductNotFoundError
from storefront.database.models import Product

logger = structlog.get_logger(__name__)

SORT_NEWEST = "newest"
SORT_PRICE_ASC = "price-asc"
SORT_PRICE_DESC = "price-desc"
SORT_OPTIONS = (SORT_NEWEST, SORT_PRICE_ASC, SORT_PRICE_DESC)

DEFAULT_PAGE_SIZE = 9
MAX_PAGE_SIZE = 100

EDITABLE_FIELDS = (
    "name",
    "description",
    "price",
    "image_url",
    "category",
    "sizes",
    "colors",
    "is_featured",
)


def normalize_options(value: Any) -> List[str]:
    """
    Turn a list or comma-separated string into unique, trimmed values.

    First occurrence wins, so the admin's ordering is preserved.
    """
    if value is None:
        return []
    if isinstance(value, str):
        parts: Iterable[Any] = value.split(",")
    else:
        parts = value
    seen: List[str] = []
    for part in parts:
        s = str(part).strip()
        if s and s not in seen:
            seen.append(s)
    return seen


@dataclass
class ProductQuery:
    """Catalog filters, sort order and page window."""

    category: Optional[str] = None
    max_price: Optional[Decimal] = None
    sizes: List[str] = field(default_factory=list)
    colors: List[str] = field(default_factory=list)
    search: Optional[str] = None
    sort: str = SORT_NEWEST
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0


class CatalogService:
    """Product CRUD and listing queries."""

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        values = {k: data.get(k) for k in EDITABLE_FIELDS}

        name = str(values.get("name") or "").strip()
        if not name:
            raise InvalidProductError("name is required")
        category = str(values.get("category") or "").strip()
        if not category:
            raise InvalidProductError("category is required")

        try:
            price = Decimal(str(values.get("price")))
        except (InvalidOperation, ValueError, TypeError) as exc:
            raise InvalidProductError("price must be a valid decimal") from exc
        if not price.is_finite() or price < 0:
            raise InvalidProductError("price must be >= 0")

        return {
            "name": name,
            "description": str(values.get("description") or ""),
            "price": price,
            "image_url": str(values.get("image_url") or ""),
            "category": category,
            "sizes": normalize_options(values.get("sizes")),
            "colors": normalize_options(values.get("colors")),
            "is_featured": bool(values.get("is_featured")),
        }

    async def create_product(self, data: Dict[str, Any], db: AsyncSession) -> Product:
        product = Product(**self._clean(data))
        db.add(product)
        await db.commit()
        logger.info("product_created", product_id=product.id, name=product.name)
        return product

    async def update_product(
        self, product_id: str, data: Dict[str, Any], db: AsyncSession
    ) -> Product:
        """Replace the editable fields of a product; ``created_at`` is kept."""
        product = await self.get_product(product_id, db)
        for key, value in self._clean(data).items():
            setattr(product, key, value)
        await db.commit()
        logger.info("product_updated", product_id=product_id)
        return product

    async def delete_product(self, product_id: str, db: AsyncSession) -> None:
        product = await self.get_product(product_id, db)
        await db.delete(product)
        await db.commit()
        logger.info("product_deleted", product_id=product_id)

    async def get_product(self, product_id: str, db: AsyncSession) -> Product:
        product = await db.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    @staticmethod
    def _apply_sort(stmt: Select, sort: str) -> Select:
        if sort == SORT_PRICE_ASC:
            return stmt.order_by(Product.price.asc(), Product.created_at.desc())
        if sort == SORT_PRICE_DESC:
            return stmt.order_by(Product.price.desc(), Product.created_at.desc())
        return stmt.order_by(Product.created_at.desc())

    async def list_products(self, query: ProductQuery, db: AsyncSession) -> List[Product]:
        """
        List products matching the query.

        Category, price and name search run in the database. Size and color
        filters require every requested option and run on the fetched rows,
        so paging is applied after them.

        Args:
            query: Filters, sort order and page window
            db: Database session

        Returns:
            List[Product]: One page of matching products
        """
        if query.sort not in SORT_OPTIONS:
            raise InvalidProductError(f"Unknown sort option: {query.sort}")
        limit = max(1, min(query.limit, MAX_PAGE_SIZE))
        offset = max(0, query.offset)

        stmt = select(Product)
        if query.category and query.category != "all":
            stmt = stmt.where(Product.category == query.category)
        if query.max_price is not None:
            stmt = stmt.where(Product.price <= query.max_price)
        if query.search:
            stmt = stmt.where(Product.name.ilike(f"%{query.search.strip()}%"))
        stmt = self._apply_sort(stmt, query.sort)

        sizes = normalize_options(query.sizes)
        colors = normalize_options(query.colors)
        if not sizes and not colors:
            result = await db.scalars(stmt.limit(limit).offset(offset))
            return list(result)

        matches = [
            p
            for p in await db.scalars(stmt)
            if all(s in (p.sizes or []) for s in sizes)
            and all(c in (p.colors or []) for c in colors)
        ]
        return matches[offset : offset + limit]

    async def list_featured(self, db: AsyncSession, limit: int = 4) -> List[Product]:
        result = await db.scalars(
            select(Product)
            .where(Product.is_featured.is_(True))
            .order_by(Product.created_at.desc())
            .limit(limit)
        )
        return list(result)

    async def list_related(
        self, product_id: str, db: AsyncSession, limit: int = 4
    ) -> List[Product]:
        """Other products in the same category."""
        product = await self.get_product(product_id, db)
        result = await db.scalars(
            select(Product)
            .where(Product.category == product.category, Product.id != product_id)
            .order_by(Product.created_at.desc())
            .limit(limit)
        )
        return list(result)

    async def facets(self, db: AsyncSession) -> Dict[str, List[str]]:
        """Distinct sizes and colors across the catalog, in first-seen order."""
        sizes: List[str] = []
        colors: List[str] = []
        for product in await db.scalars(select(Product).order_by(Product.created_at)):
            sizes = normalize_options(sizes + list(product.sizes or []))
            colors = normalize_options(colors + list(product.colors or []))
        return {"sizes": sizes, "colors": colors}

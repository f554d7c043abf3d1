"""
Unit tests for the product catalog.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List

import pytest
import pytest_asyncio

from storefront.core.catalog import CatalogService, ProductQuery, normalize_options
from storefront.core.exceptions import InvalidProductError, ProductNotFoundError
from storefront.database.models import Product

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)

ROWS: List[Dict[str, Any]] = [
    # Oldest first; created_at increases by one hour per row.
    {"name": "Merino Scarf", "price": "500", "category": "scarves",
     "sizes": ["S", "M"], "colors": ["Red", "Blue"], "is_featured": True},
    {"name": "Chunky Scarf", "price": "900", "category": "scarves",
     "sizes": ["M", "L"], "colors": ["Red"], "is_featured": False},
    {"name": "Cable Knit Hat", "price": "1200", "category": "hats",
     "sizes": ["M"], "colors": ["Blue"], "is_featured": True},
    {"name": "Baby Blanket", "price": "2500", "category": "blankets",
     "sizes": [], "colors": ["White"], "is_featured": False},
]


@pytest_asyncio.fixture
async def products(test_db: Any) -> List[Product]:
    rows = []
    for i, data in enumerate(ROWS):
        product = Product(
            name=data["name"],
            price=Decimal(data["price"]),
            category=data["category"],
            sizes=data["sizes"],
            colors=data["colors"],
            is_featured=data["is_featured"],
            created_at=T0 + timedelta(hours=i),
        )
        test_db.add(product)
        rows.append(product)
    await test_db.commit()
    return rows


def _names(items: List[Product]) -> List[str]:
    return [p.name for p in items]


class TestNormalizeOptions:

    @pytest.mark.unit
    def test_comma_string(self) -> None:
        assert normalize_options(" S, M ,,L, M") == ["S", "M", "L"]

    @pytest.mark.unit
    def test_list_and_none(self) -> None:
        assert normalize_options(["Red", " Red ", "Blue"]) == ["Red", "Blue"]
        assert normalize_options(None) == []


class TestProductMaintenance:
    """Admin create/update/delete."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_create_product(self, test_db: Any) -> None:
        product = await CatalogService().create_product(
            {"name": " Wool Socks ", "price": "349.50", "category": "socks", "sizes": "S,M"},
            test_db,
        )

        assert product.id
        assert product.name == "Wool Socks"
        assert product.price == Decimal("349.50")
        assert product.sizes == ["S", "M"]
        assert product.colors == []
        assert product.is_featured is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data, message",
        [
            ({"name": "", "price": "1", "category": "c"}, "name is required"),
            ({"name": "x", "price": "1", "category": " "}, "category is required"),
            ({"name": "x", "price": "abc", "category": "c"}, "valid decimal"),
            ({"name": "x", "price": "-5", "category": "c"}, "price must be >= 0"),
        ],
    )
    async def test_invalid_product(self, test_db: Any, data: Dict[str, Any], message: str) -> None:
        with pytest.raises(InvalidProductError, match=message):
            await CatalogService().create_product(data, test_db)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_keeps_created_at(self, test_db: Any, products: List[Product]) -> None:
        service = CatalogService()
        target = products[0]
        created_at = target.created_at

        updated = await service.update_product(
            target.id,
            {"name": "Merino Scarf XL", "price": "650", "category": "scarves", "colors": "Green"},
            test_db,
        )

        assert updated.name == "Merino Scarf XL"
        assert updated.price == Decimal("650")
        assert updated.colors == ["Green"]
        assert updated.created_at == created_at

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete_product(self, test_db: Any, products: List[Product]) -> None:
        service = CatalogService()
        await service.delete_product(products[1].id, test_db)

        with pytest.raises(ProductNotFoundError):
            await service.get_product(products[1].id, test_db)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_update_unknown_product(self, test_db: Any) -> None:
        with pytest.raises(ProductNotFoundError):
            await CatalogService().update_product(
                "missing", {"name": "x", "price": "1", "category": "c"}, test_db
            )


class TestListProducts:
    """Storefront listing filters, sort and paging."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_default_is_newest_first(self, test_db: Any, products: List[Product]) -> None:
        result = await CatalogService().list_products(ProductQuery(), test_db)
        assert _names(result) == [
            "Baby Blanket",
            "Cable Knit Hat",
            "Chunky Scarf",
            "Merino Scarf",
        ]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_category_all_means_no_filter(
        self, test_db: Any, products: List[Product]
    ) -> None:
        service = CatalogService()
        assert len(await service.list_products(ProductQuery(category="all"), test_db)) == 4
        scarves = await service.list_products(ProductQuery(category="scarves"), test_db)
        assert _names(scarves) == ["Chunky Scarf", "Merino Scarf"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_max_price_and_sort(self, test_db: Any, products: List[Product]) -> None:
        result = await CatalogService().list_products(
            ProductQuery(max_price=Decimal("1200"), sort="price-desc"), test_db
        )
        assert _names(result) == ["Cable Knit Hat", "Chunky Scarf", "Merino Scarf"]

        result = await CatalogService().list_products(ProductQuery(sort="price-asc"), test_db)
        assert _names(result)[0] == "Merino Scarf"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sizes_and_colors_must_all_match(
        self, test_db: Any, products: List[Product]
    ) -> None:
        service = CatalogService()

        result = await service.list_products(ProductQuery(sizes=["M"], colors=["Red"]), test_db)
        assert _names(result) == ["Chunky Scarf", "Merino Scarf"]

        result = await service.list_products(ProductQuery(sizes=["S", "M"]), test_db)
        assert _names(result) == ["Merino Scarf"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_search_by_name(self, test_db: Any, products: List[Product]) -> None:
        result = await CatalogService().list_products(ProductQuery(search="scarf"), test_db)
        assert set(_names(result)) == {"Merino Scarf", "Chunky Scarf"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_paging(self, test_db: Any, products: List[Product]) -> None:
        service = CatalogService()
        first = await service.list_products(ProductQuery(limit=3), test_db)
        second = await service.list_products(ProductQuery(limit=3, offset=3), test_db)

        assert len(first) == 3
        assert _names(second) == ["Merino Scarf"]

        filtered = await service.list_products(
            ProductQuery(colors=["Red"], limit=1, offset=1), test_db
        )
        assert _names(filtered) == ["Merino Scarf"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_sort(self, test_db: Any) -> None:
        with pytest.raises(InvalidProductError, match="Unknown sort option"):
            await CatalogService().list_products(ProductQuery(sort="popular"), test_db)


class TestShowcase:
    """Featured, related and facet queries."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_featured(self, test_db: Any, products: List[Product]) -> None:
        result = await CatalogService().list_featured(test_db)
        assert _names(result) == ["Cable Knit Hat", "Merino Scarf"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_related_excludes_self(self, test_db: Any, products: List[Product]) -> None:
        result = await CatalogService().list_related(products[0].id, test_db)
        assert _names(result) == ["Chunky Scarf"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_related_unknown_product(self, test_db: Any) -> None:
        with pytest.raises(ProductNotFoundError):
            await CatalogService().list_related("missing", test_db)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_facets(self, test_db: Any, products: List[Product]) -> None:
        facets = await CatalogService().facets(test_db)
        assert facets == {"sizes": ["S", "M", "L"], "colors": ["Red", "Blue", "White"]}

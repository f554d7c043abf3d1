"""
Session-scoped shopping cart.

The cart lives with the client session and is handed to checkout as an
explicit value; nothing here touches the database.
"""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Dict, List, Optional

TWOPLACES = Decimal("0.01")


@dataclass(frozen=True)
class CartItem:
    """A single cart line, snapshotted from the catalog when added."""

    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    image_url: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_dict(self) -> Dict[str, object]:
        """Serialize in the checkout request shape."""
        return {
            "productId": self.product_id,
            "name": self.name,
            "price": str(self.unit_price),
            "quantity": self.quantity,
            "imageUrl": self.image_url,
        }


@dataclass
class Cart:
    """
    Ordered collection of cart lines keyed by product id.

    Adding a product that is already present increases its quantity
    instead of creating a second line.
    """

    items: List[CartItem] = field(default_factory=list)

    def _index(self, product_id: str) -> Optional[int]:
        for i, item in enumerate(self.items):
            if item.product_id == product_id:
                return i
        return None

    def add(self, item: CartItem, quantity: Optional[int] = None) -> None:
        """
        Add a product to the cart.

        Args:
            item: Cart line to add
            quantity: Quantity to add (defaults to ``item.quantity``)

        Raises:
            ValueError: If quantity is not positive
        """
        qty = item.quantity if quantity is None else quantity
        if qty <= 0:
            raise ValueError("quantity must be >= 1")

        idx = self._index(item.product_id)
        if idx is None:
            self.items.append(replace(item, quantity=qty))
        else:
            existing = self.items[idx]
            self.items[idx] = replace(existing, quantity=existing.quantity + qty)

    def remove(self, product_id: str) -> None:
        self.items = [i for i in self.items if i.product_id != product_id]

    def update_quantity(self, product_id: str, quantity: int) -> None:
        """Set a line's quantity; zero or less removes the line."""
        idx = self._index(product_id)
        if idx is None:
            return
        if quantity <= 0:
            self.remove(product_id)
        else:
            self.items[idx] = replace(self.items[idx], quantity=quantity)

    def clear(self) -> None:
        self.items = []

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(i.quantity for i in self.items)

    @property
    def subtotal(self) -> Decimal:
        return sum((i.line_total for i in self.items), Decimal("0")).quantize(TWOPLACES)

    def to_checkout_items(self) -> List[Dict[str, object]]:
        """Export the cart as the ``items`` list of a checkout request."""
        return [i.to_dict() for i in self.items]

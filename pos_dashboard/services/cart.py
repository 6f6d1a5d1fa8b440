"""
Shopping Cart
Ordered, product-unique collection of line items for one checkout session
"""

from pos_dashboard.errors import ValidationError
from pos_dashboard.services.checkout_calculator import LineItem, to_int


class Cart:
    """
    Cart keyed by product id, kept in insertion order.

    Every mutation validates first and only then changes state, so a rejected
    operation leaves the cart exactly as it was.
    """

    def __init__(self, items=None):
        self._items = {}
        for item in items or ():
            if item.product_id in self._items:
                raise ValidationError(f'Duplicate product {item.product_id} in cart', field='product_id')
            self._items[item.product_id] = item

    def __iter__(self):
        return iter(self._items.values())

    def __len__(self):
        return len(self._items)

    def __contains__(self, product_id):
        return product_id in self._items

    def __eq__(self, other):
        if not isinstance(other, Cart):
            return NotImplemented
        # dict equality ignores display order
        return self._items == other._items

    def __repr__(self):
        return f'<Cart {len(self)} items>'

    @property
    def items(self):
        """Immutable snapshot handed to the calculator"""
        return tuple(self._items.values())

    @property
    def is_empty(self):
        return not self._items

    def get(self, product_id):
        return self._items.get(product_id)

    def add_product(self, product, quantity=1):
        """
        Add a catalog product, incrementing quantity if it is already in the cart

        Args:
            product: Catalog record dict with id, name, unit_price,
                tax_rate_percent, stock_on_hand
            quantity: Units to add

        Returns:
            LineItem: The resulting cart line

        Raises:
            ValidationError: Out of stock or invalid product values
        """
        quantity = to_int(quantity, 'quantity')
        if quantity < 1:
            raise ValidationError('Quantity must be at least 1', field='quantity')

        stock = product.get('stock_on_hand')
        existing = self._items.get(product['id'])
        new_quantity = (existing.quantity if existing else 0) + quantity

        if stock is not None:
            if stock <= 0:
                raise ValidationError('Product out of stock', field='product_id')
            if new_quantity > stock:
                raise ValidationError('Not enough stock available', field='quantity')

        if existing:
            line = existing.with_quantity(new_quantity)
        else:
            line = LineItem(
                product_id=product['id'],
                name=product['name'],
                unit_price=product['unit_price'],
                quantity=new_quantity,
                tax_rate_percent=product.get('tax_rate_percent') or 0,
            )
        self._items[line.product_id] = line
        return line

    def update_quantity(self, product_id, quantity, stock_on_hand=None):
        """
        Set a line's quantity; anything below 1 removes the line

        Returns:
            LineItem or None if the line was removed
        """
        quantity = to_int(quantity, 'quantity')
        existing = self._items.get(product_id)
        if existing is None:
            raise ValidationError('Product is not in the cart', field='product_id')

        if quantity < 1:
            self.remove(product_id)
            return None

        if stock_on_hand is not None and quantity > stock_on_hand:
            raise ValidationError('Not enough stock available', field='quantity')

        line = existing.with_quantity(quantity)
        self._items[product_id] = line
        return line

    def remove(self, product_id):
        """Remove a line; removing a product that is not present is a no-op"""
        return self._items.pop(product_id, None)

    def clear(self):
        self._items.clear()

    # Session persistence

    def to_session(self):
        return [
            {
                'product_id': item.product_id,
                'name': item.name,
                'unit_price': str(item.unit_price),
                'quantity': item.quantity,
                'tax_rate_percent': str(item.tax_rate_percent),
            }
            for item in self
        ]

    @classmethod
    def from_session(cls, data):
        return cls(LineItem(**row) for row in data or [])

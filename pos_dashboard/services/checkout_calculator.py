"""
Checkout Calculator
Pure billing engine: line valuation, cart aggregation, loyalty adjustment
and total resolution. Every figure is recomputed from the inputs on each call.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_FLOOR

from pos_dashboard.errors import ValidationError, DiscountExceedsTotalError

ZERO = Decimal('0')
HUNDRED = Decimal('100')

# 100 points = 10 currency units
POINTS_PER_REDEMPTION_BLOCK = 100
REDEMPTION_BLOCK_VALUE = Decimal('10')
# Smallest redeemable step: one whole currency unit
POINTS_PER_CURRENCY_UNIT = POINTS_PER_REDEMPTION_BLOCK // int(REDEMPTION_BLOCK_VALUE)

# 1 point per 10 currency units paid
SPEND_PER_POINT = Decimal('10')
DEFAULT_POINTS_MULTIPLIER = Decimal('1.0')


def to_decimal(value, field='value'):
    """
    Convert a user or database value to Decimal without float drift

    Args:
        value: int, str, Decimal or float
        field: Field name used in the error message

    Returns:
        Decimal: Converted value

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field} must be a number', field=field)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValidationError(f'{field} must be a number', field=field)
    if not result.is_finite():
        raise ValidationError(f'{field} must be a finite number', field=field)
    return result


def to_int(value, field='value'):
    """Convert to int, rejecting fractions and booleans"""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f'{field} must be a whole number', field=field)
    if isinstance(value, int):
        return value
    number = to_decimal(value, field)
    if number != number.to_integral_value():
        raise ValidationError(f'{field} must be a whole number', field=field)
    return int(number)


@dataclass(frozen=True)
class LineItem:
    """A product line in the cart"""

    product_id: int
    name: str
    unit_price: Decimal
    quantity: int
    tax_rate_percent: Decimal = ZERO

    def __post_init__(self):
        unit_price = to_decimal(self.unit_price, 'unit_price')
        quantity = to_int(self.quantity, 'quantity')
        tax_rate = to_decimal(self.tax_rate_percent, 'tax_rate_percent')

        if unit_price < 0:
            raise ValidationError('Price cannot be negative', field='unit_price')
        if quantity < 1:
            raise ValidationError('Quantity must be at least 1', field='quantity')
        if tax_rate < 0 or tax_rate > HUNDRED:
            raise ValidationError('GST rate must be between 0 and 100', field='tax_rate_percent')

        # frozen dataclass: normalise through object.__setattr__
        object.__setattr__(self, 'unit_price', unit_price)
        object.__setattr__(self, 'quantity', quantity)
        object.__setattr__(self, 'tax_rate_percent', tax_rate)

    @property
    def line_total(self):
        return line_total(self)

    @property
    def line_tax(self):
        return line_tax(self)

    def with_quantity(self, quantity):
        """Return a copy of this line with a different quantity"""
        return LineItem(
            product_id=self.product_id,
            name=self.name,
            unit_price=self.unit_price,
            quantity=quantity,
            tax_rate_percent=self.tax_rate_percent,
        )

    def to_dict(self):
        return {
            'product_id': self.product_id,
            'name': self.name,
            'unit_price': str(self.unit_price),
            'quantity': self.quantity,
            'tax_rate_percent': str(self.tax_rate_percent),
            'line_total': str(self.line_total),
        }


@dataclass(frozen=True)
class LoyaltyTier:
    """Loyalty bracket: discount percentage and points multiplier"""

    name: str
    discount_percent: Decimal = ZERO
    points_multiplier: Decimal = DEFAULT_POINTS_MULTIPLIER

    def __post_init__(self):
        discount = to_decimal(self.discount_percent, 'discount_percent')
        multiplier = to_decimal(self.points_multiplier, 'points_multiplier')
        if not self.name:
            raise ValidationError('Tier name is required', field='name')
        if discount < 0 or discount > HUNDRED:
            raise ValidationError('Tier discount must be between 0 and 100', field='discount_percent')
        if multiplier < 0:
            raise ValidationError('Points multiplier cannot be negative', field='points_multiplier')
        object.__setattr__(self, 'discount_percent', discount)
        object.__setattr__(self, 'points_multiplier', multiplier)

    @classmethod
    def from_record(cls, record):
        """
        Build a tier from a database row or a plain mapping

        Args:
            record: Object or dict with tier_name/name, discount_percentage
                and points_multiplier

        Returns:
            LoyaltyTier or None if record is None

        Raises:
            ValidationError: If the record is malformed
        """
        if record is None:
            return None
        get = record.get if isinstance(record, dict) else (lambda key, default=None: getattr(record, key, default))
        name = get('tier_name') or get('name')
        discount = get('discount_percentage', get('discount_percent'))
        multiplier = get('points_multiplier')
        if discount is None:
            raise ValidationError('Tier record is missing discount_percentage', field='discount_percentage')
        if multiplier is None:
            multiplier = DEFAULT_POINTS_MULTIPLIER
        return cls(name=name, discount_percent=discount, points_multiplier=multiplier)


@dataclass(frozen=True)
class LoyaltyCustomer:
    """Customer as seen by the calculator"""

    id: int
    available_points: int = 0
    tier: LoyaltyTier = None

    def __post_init__(self):
        points = to_int(self.available_points, 'available_points')
        if points < 0:
            raise ValidationError('Available points cannot be negative', field='available_points')
        if self.tier is not None and not isinstance(self.tier, LoyaltyTier):
            raise ValidationError('Invalid loyalty tier', field='tier')
        object.__setattr__(self, 'available_points', points)

    @classmethod
    def from_record(cls, record, tier=None):
        """Build from a Customer row (or dict) and its resolved tier row"""
        if record is None:
            return None
        get = record.get if isinstance(record, dict) else (lambda key, default=None: getattr(record, key, default))
        points = get('total_points')
        if points is None:
            points = get('available_points', 0)
        return cls(id=get('id'), available_points=points, tier=LoyaltyTier.from_record(tier))


@dataclass(frozen=True)
class RedemptionRequest:
    points_to_redeem: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'points_to_redeem', to_int(self.points_to_redeem, 'points_to_redeem'))


@dataclass(frozen=True)
class Breakdown:
    """Complete monetary result of a checkout"""

    subtotal: Decimal
    tax_total: Decimal
    tier_discount: Decimal
    points_discount: Decimal
    total: Decimal
    points_earned: int

    def to_dict(self):
        return {
            'subtotal': str(self.subtotal),
            'tax_total': str(self.tax_total),
            'tier_discount': str(self.tier_discount),
            'points_discount': str(self.points_discount),
            'total': str(self.total),
            'points_earned': self.points_earned,
        }


# ============================================================================
# LINE ITEM VALUATION
# ============================================================================

def line_total(item):
    """price x quantity"""
    return item.unit_price * item.quantity


def line_tax(item):
    """GST on the line's pre-tax value"""
    return line_total(item) * item.tax_rate_percent / HUNDRED


# ============================================================================
# CART AGGREGATION
# ============================================================================

def aggregate_cart(items):
    """
    Sum line totals and line taxes in insertion order

    Args:
        items: Iterable of LineItem

    Returns:
        tuple: (subtotal, tax_total) as Decimal
    """
    subtotal = ZERO
    tax_total = ZERO
    for item in items:
        subtotal += line_total(item)
        tax_total += line_tax(item)
    return subtotal, tax_total


# ============================================================================
# LOYALTY ADJUSTMENT
# ============================================================================

def tier_discount(subtotal, customer=None):
    """Percentage discount from the customer's tier, applied to the pre-tax subtotal"""
    if customer is None or customer.tier is None:
        return ZERO
    return subtotal * customer.tier.discount_percent / HUNDRED


def validate_redemption(redemption, customer=None):
    """
    Check a redemption request against the customer's balance

    Raises:
        ValidationError: Negative amount, no customer, over balance, or
            not a whole currency unit
    """
    points = redemption.points_to_redeem if redemption is not None else 0
    if points < 0:
        raise ValidationError('Points to redeem cannot be negative', field='points_to_redeem')
    if points == 0:
        return
    if customer is None:
        raise ValidationError('Select a loyalty customer before redeeming points', field='points_to_redeem')
    if points > customer.available_points:
        raise ValidationError(
            f'Customer has only {customer.available_points} points available',
            field='points_to_redeem'
        )
    if points % POINTS_PER_CURRENCY_UNIT:
        raise ValidationError(
            f'Points must be redeemed in steps of {POINTS_PER_CURRENCY_UNIT}',
            field='points_to_redeem'
        )


def points_discount(redemption, customer=None):
    """Cash value of the redeemed points (100 points = 10)"""
    validate_redemption(redemption, customer)
    points = redemption.points_to_redeem if redemption is not None else 0
    return Decimal(points) / POINTS_PER_REDEMPTION_BLOCK * REDEMPTION_BLOCK_VALUE


def max_redeemable_points(items, customer=None):
    """
    Largest redemption that the customer can afford and the bill can absorb

    Capped by the balance and by the points worth subtotal + tax - tier
    discount, rounded down to a redeemable step.

    Args:
        items: Sequence of LineItem
        customer: LoyaltyCustomer or None

    Returns:
        int: Points, 0 without a customer
    """
    if customer is None:
        return 0
    subtotal, tax_total = aggregate_cart(items)
    payable = subtotal + tax_total - tier_discount(subtotal, customer)
    if payable <= 0:
        return 0
    covering = (payable / REDEMPTION_BLOCK_VALUE * POINTS_PER_REDEMPTION_BLOCK).to_integral_value(
        rounding=ROUND_FLOOR
    )
    points = min(customer.available_points, int(covering))
    return points - points % POINTS_PER_CURRENCY_UNIT


def points_earned(total, customer=None):
    """
    Points credited for a sale: floor(total / 10 * multiplier)

    Args:
        total: Final payable total after all discounts
        customer: LoyaltyCustomer or None

    Returns:
        int: Non-negative number of points
    """
    if customer is None or total <= 0:
        return 0
    multiplier = customer.tier.points_multiplier if customer.tier else DEFAULT_POINTS_MULTIPLIER
    earned = (total / SPEND_PER_POINT * multiplier).to_integral_value(rounding=ROUND_FLOOR)
    return int(earned)


# ============================================================================
# TOTAL RESOLUTION
# ============================================================================

def resolve_total(subtotal, tax_total, tier_discount_amount, points_discount_amount):
    """
    subtotal + tax - tier discount - points discount

    Raises:
        DiscountExceedsTotalError: If the result is negative
    """
    total = subtotal + tax_total - tier_discount_amount - points_discount_amount
    if total < 0:
        raise DiscountExceedsTotalError(
            'Discounts exceed the bill amount; reduce the points to redeem',
            field='points_to_redeem'
        )
    return total


def calculate_breakdown(items, customer=None, redemption=None):
    """
    Compute the full checkout breakdown

    Args:
        items: Sequence of LineItem (cart snapshot, not modified)
        customer: LoyaltyCustomer or None
        redemption: RedemptionRequest or None

    Returns:
        Breakdown
    """
    if redemption is None:
        redemption = RedemptionRequest(0)

    points_off = points_discount(redemption, customer)
    subtotal, tax_total = aggregate_cart(items)
    tier_off = tier_discount(subtotal, customer)
    total = resolve_total(subtotal, tax_total, tier_off, points_off)

    return Breakdown(
        subtotal=subtotal,
        tax_total=tax_total,
        tier_discount=tier_off,
        points_discount=points_off,
        total=total,
        points_earned=points_earned(total, customer),
    )

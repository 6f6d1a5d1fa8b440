"""
Checkout Session
Operator-scoped checkout state (cart, loyalty customer, redemption, payment
method) kept in the Flask session between requests.
"""

from pos_dashboard.errors import ValidationError
from pos_dashboard.models import Sale
from pos_dashboard.services.cart import Cart
from pos_dashboard.services.checkout_calculator import (
    RedemptionRequest, calculate_breakdown, max_redeemable_points, validate_redemption
)

SESSION_KEY = 'checkout'


class CheckoutSession:
    """
    Wraps the checkout state stored under one session key.

    Mutators validate before changing anything; callers persist with
    save() only after a mutation succeeded.
    """

    def __init__(self, store):
        self.store = store
        data = store.get(SESSION_KEY) or {}
        self.cart = Cart.from_session(data.get('cart'))
        self.customer_id = data.get('customer_id')
        self.points_to_redeem = data.get('points_to_redeem', 0)
        self.payment_method = data.get('payment_method', 'cash')
        self.scan_state = data.get('scan', {})

    def save(self):
        self.store[SESSION_KEY] = {
            'cart': self.cart.to_session(),
            'customer_id': self.customer_id,
            'points_to_redeem': self.points_to_redeem,
            'payment_method': self.payment_method,
            'scan': self.scan_state,
        }

    def clear(self):
        """Drop the whole checkout (after a sale or when abandoned)"""
        self.cart.clear()
        self.customer_id = None
        self.points_to_redeem = 0
        self.payment_method = 'cash'
        self.scan_state = {}
        self.store.pop(SESSION_KEY, None)

    @property
    def redemption(self):
        return RedemptionRequest(self.points_to_redeem)

    def select_customer(self, customer_id):
        """Switching customers resets the redemption, which was checked against the old balance"""
        if customer_id != self.customer_id:
            self.points_to_redeem = 0
        self.customer_id = customer_id

    def clear_customer(self):
        self.customer_id = None
        self.points_to_redeem = 0

    def set_redemption(self, points, loyalty_customer):
        """
        Set points to redeem after validating against the selected customer

        Raises:
            ValidationError: See validate_redemption
        """
        request = RedemptionRequest(points)
        validate_redemption(request, loyalty_customer)
        self.points_to_redeem = request.points_to_redeem

    def set_payment_method(self, method):
        if method not in Sale.PAYMENT_METHODS:
            raise ValidationError(
                f"Payment method must be one of: {', '.join(Sale.PAYMENT_METHODS)}",
                field='payment_method'
            )
        self.payment_method = method

    def breakdown(self, loyalty_customer):
        return calculate_breakdown(self.cart.items, loyalty_customer, self.redemption)

    def to_dict(self, loyalty_customer=None, customer=None):
        return {
            'items': [item.to_dict() for item in self.cart],
            'customer': customer.to_dict() if customer else None,
            'points_to_redeem': self.points_to_redeem,
            'payment_method': self.payment_method,
            'max_redeemable_points': self.max_redeemable_points(loyalty_customer),
            'breakdown': self.breakdown(loyalty_customer).to_dict(),
        }

    def max_redeemable_points(self, loyalty_customer):
        return max_redeemable_points(self.cart.items, loyalty_customer)

"""
Checkout Errors
Exception hierarchy shared by the billing engine, the cart and the checkout service
"""


class CheckoutError(Exception):
    """Base class for all checkout errors"""

    status_code = 400

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self):
        payload = {'success': False, 'error': self.message}
        if self.field:
            payload['field'] = self.field
        return payload


class ValidationError(CheckoutError):
    """Input rejected before any cart or session state was changed"""


class DiscountExceedsTotalError(ValidationError):
    """Discounts would drive the payable total below zero"""


class UpstreamDataError(CheckoutError):
    """Catalog/customer lookup or sale persistence failed"""

    status_code = 502

"""
Catalog and Customer Lookups
Read-side queries that feed the cart and the calculator
"""

import logging
from sqlalchemy.exc import SQLAlchemyError

from pos_dashboard.errors import UpstreamDataError, ValidationError
from pos_dashboard.models import db, Product, Customer, LoyaltyTier
from pos_dashboard.services.checkout_calculator import LoyaltyCustomer

logger = logging.getLogger(__name__)


def find_product(term):
    """
    Resolve a search term or scanned code to at most one active product.

    An exact barcode (or product code) match wins over a name match; name
    matching is a case-insensitive substring search.

    Args:
        term: Product name fragment, barcode or code

    Returns:
        Product or None
    """
    term = (term or '').strip()
    if not term:
        return None

    try:
        product = Product.query.filter(
            Product.is_active == True,
            db.or_(Product.barcode == term, Product.code == term)
        ).first()
        if product:
            return product

        return Product.query.filter(
            Product.is_active == True,
            Product.name.ilike(f'%{term}%')
        ).order_by(Product.name.asc(), Product.id.asc()).first()
    except SQLAlchemyError as e:
        logger.error(f"Catalog lookup failed for {term!r}: {e}")
        raise UpstreamDataError('Could not search the product catalog')


def get_product(product_id):
    """Active product by id, or None"""
    try:
        product = db.session.get(Product, product_id)
    except SQLAlchemyError as e:
        logger.error(f"Catalog lookup failed for product {product_id}: {e}")
        raise UpstreamDataError('Could not load the product')
    if product is None or not product.is_active:
        return None
    return product


def search_customers_by_phone(phone, limit=5):
    """Customers whose phone contains the given digits"""
    phone = (phone or '').strip()
    if not phone:
        return []
    try:
        return Customer.query.filter(Customer.phone.ilike(f'%{phone}%'))\
            .order_by(Customer.name.asc()).limit(limit).all()
    except SQLAlchemyError as e:
        logger.error(f"Customer lookup failed for {phone!r}: {e}")
        raise UpstreamDataError('Could not search customers')


def load_loyalty_customer(customer_id):
    """
    Load a customer and resolve its tier into calculator types.

    Args:
        customer_id: Customer id or None

    Returns:
        tuple: (Customer row, LoyaltyCustomer); (None, None) without an id

    Raises:
        UpstreamDataError: The lookup failed
        ValidationError: Unknown customer or a malformed tier/customer record
    """
    if customer_id is None:
        return None, None

    try:
        customer = db.session.get(Customer, customer_id)
        tier = LoyaltyTier.for_points(customer.total_points) if customer else None
    except SQLAlchemyError as e:
        logger.error(f"Customer lookup failed for {customer_id}: {e}")
        raise UpstreamDataError('Could not load the customer')

    if customer is None:
        raise ValidationError('Customer not found', field='customer_id')

    return customer, LoyaltyCustomer.from_record(customer, tier)

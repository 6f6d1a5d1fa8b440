"""
Checkout Service
Persists a finished checkout: sale record, sale items, stock decrement and
loyalty ledger entries, all in one database transaction.
"""

import logging
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from pos_dashboard.errors import ValidationError, UpstreamDataError
from pos_dashboard.models import db, Sale, SaleItem, StockMovement, LoyaltyTransaction
from pos_dashboard.services.checkout_calculator import RedemptionRequest, calculate_breakdown
from pos_dashboard.services.lookups import load_loyalty_customer, get_product
from pos_dashboard.utils.helpers import generate_sale_number, quantize_money

logger = logging.getLogger(__name__)


def _check_stock(cart):
    """Re-check every line against current stock; returns {product_id: Product}"""
    products = {}
    for item in cart:
        product = get_product(item.product_id)
        if product is None:
            raise ValidationError(f'{item.name} is no longer available', field='product_id')
        if (product.stock or 0) < item.quantity:
            raise ValidationError(
                f'Insufficient stock for {product.name}. Available: {product.stock or 0}',
                field='quantity'
            )
        products[item.product_id] = product
    return products


def complete_sale(cart, cashier_id, customer_id=None, points_to_redeem=0, payment_method='cash'):
    """
    Compute the final breakdown and persist the sale.

    The cart is not modified; the caller clears it only when this returns.

    Args:
        cart: Cart
        cashier_id: Id of the logged-in user
        customer_id: Loyalty customer id or None
        points_to_redeem: Points converted to a discount
        payment_method: cash, card or upi

    Returns:
        tuple: (Sale, Breakdown)

    Raises:
        ValidationError: Empty cart, invalid payment method, stock or
            redemption problems
        UpstreamDataError: The sale could not be stored
    """
    if cart.is_empty:
        raise ValidationError('Cart is empty')
    if payment_method not in Sale.PAYMENT_METHODS:
        raise ValidationError(
            f"Payment method must be one of: {', '.join(Sale.PAYMENT_METHODS)}",
            field='payment_method'
        )

    customer, loyalty_customer = load_loyalty_customer(customer_id)
    redemption = RedemptionRequest(points_to_redeem)
    breakdown = calculate_breakdown(cart.items, loyalty_customer, redemption)
    products = _check_stock(cart)

    try:
        sale = Sale(
            sale_number=generate_sale_number(),
            user_id=cashier_id,
            customer_id=customer.id if customer else None,
            payment_method=payment_method,
            subtotal=quantize_money(breakdown.subtotal),
            gst_amount=quantize_money(breakdown.tax_total),
            tier_discount=quantize_money(breakdown.tier_discount),
            points_discount=quantize_money(breakdown.points_discount),
            total=quantize_money(breakdown.total),
            points_redeemed=redemption.points_to_redeem,
            points_earned=breakdown.points_earned,
        )
        db.session.add(sale)
        db.session.flush()  # Get sale ID

        for item in cart:
            product = products[item.product_id]
            db.session.add(SaleItem(
                sale_id=sale.id,
                product_id=item.product_id,
                product_name=item.name,
                quantity=item.quantity,
                price=item.unit_price,
                gst=item.tax_rate_percent,
            ))

            product.stock = (product.stock or 0) - item.quantity
            db.session.add(StockMovement(
                product_id=product.id,
                user_id=cashier_id,
                movement_type='sale',
                quantity=-item.quantity,
                reference=sale.sale_number,
                notes=f'Sale {sale.sale_number}'
            ))

        if customer:
            if redemption.points_to_redeem > 0:
                customer.total_points -= redemption.points_to_redeem
                db.session.add(LoyaltyTransaction(
                    customer_id=customer.id,
                    sale_id=sale.id,
                    transaction_type='redeem',
                    points_redeemed=redemption.points_to_redeem,
                    description=f'Redeemed {redemption.points_to_redeem} points for sale {sale.sale_number}'
                ))
            if breakdown.points_earned > 0:
                customer.total_points += breakdown.points_earned
                db.session.add(LoyaltyTransaction(
                    customer_id=customer.id,
                    sale_id=sale.id,
                    transaction_type='earn',
                    points_earned=breakdown.points_earned,
                    description=f'Earned {breakdown.points_earned} points from sale {sale.sale_number}'
                ))

        db.session.commit()

    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to persist sale: {e}")
        raise UpstreamDataError('Failed to complete payment. The cart was kept; please retry.')

    logger.info(
        f"Sale {sale.sale_number} completed: total={breakdown.total} "
        f"items={len(cart)} customer={sale.customer_id} points_earned={breakdown.points_earned}"
    )
    return sale, breakdown


def build_invoice(sale):
    """
    Invoice/receipt payload for a persisted sale

    Args:
        sale: Sale

    Returns:
        dict
    """
    config = current_app.config
    customer = sale.customer
    return {
        'business': {
            'name': config.get('BUSINESS_NAME'),
            'address': config.get('BUSINESS_ADDRESS'),
            'phone': config.get('BUSINESS_PHONE'),
            'gstin': config.get('BUSINESS_GSTIN'),
        },
        'currency_symbol': config.get('CURRENCY_SYMBOL'),
        'invoice_number': sale.sale_number,
        'date': sale.created_at.isoformat() if sale.created_at else None,
        'cashier': sale.cashier.full_name if sale.cashier else None,
        'customer': {
            'id': customer.id,
            'name': customer.name,
            'phone': customer.phone,
            'total_points': customer.total_points,
        } if customer else None,
        'payment_method': sale.payment_method,
        'items': [item.to_dict() for item in sale.items],
        'subtotal': float(sale.subtotal),
        'gst_amount': float(sale.gst_amount),
        'tier_discount': float(sale.tier_discount or 0),
        'points_discount': float(sale.points_discount or 0),
        'total': float(sale.total),
        'points_redeemed': sale.points_redeemed or 0,
        'points_earned': sale.points_earned or 0,
    }

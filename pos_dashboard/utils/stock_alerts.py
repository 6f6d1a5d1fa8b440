"""
Stock Alert Utilities
Low-stock and expiry alerts plus an inventory summary
"""

from pos_dashboard.models import Product


def get_low_stock_alerts():
    """
    Get all active products at or below their minimum stock level.

    Returns list of dicts with product, current stock, minimum level,
    shortfall and urgency, most urgent first.
    """
    alerts = []

    products = Product.query.filter_by(is_active=True).all()

    for product in products:
        if not product.is_low_stock:
            continue

        current_stock = product.stock or 0
        min_level = product.effective_min_stock_level

        if current_stock <= 0:
            alert_type = 'out_of_stock'
            urgency = 'critical'
        else:
            alert_type = 'low_stock'
            urgency = 'high' if current_stock <= min_level / 2 else 'medium'

        alerts.append({
            'product': product.to_dict(),
            'current_stock': current_stock,
            'min_stock_level': min_level,
            'shortfall': product.shortfall,
            'alert_type': alert_type,
            'urgency': urgency,
        })

    # Sort by urgency, then lowest stock first
    urgency_order = {'critical': 0, 'high': 1, 'medium': 2}
    alerts.sort(key=lambda x: (urgency_order.get(x['urgency'], 3), x['current_stock']))

    return alerts


def get_expiring_products(days=30):
    """
    In-stock products whose expiry date falls within the next `days` days
    (already expired stock included), soonest first.
    """
    products = Product.query.filter(
        Product.is_active == True,
        Product.expiry_date.isnot(None),
        Product.stock > 0
    ).order_by(Product.expiry_date.asc()).all()

    expiring = []
    for product in products:
        if not product.is_expiring_within(days):
            continue
        days_left = product.days_until_expiry
        expiring.append({
            'product': product.to_dict(),
            'expiry_date': product.expiry_date.isoformat(),
            'days_until_expiry': days_left,
            'is_expired': days_left < 0,
        })
    return expiring


def get_stock_summary():
    """Summary statistics for the whole inventory."""
    products = Product.query.filter_by(is_active=True).all()
    total_products = len(products)

    out_of_stock = 0
    low_stock = 0
    in_stock = 0
    total_value = 0

    for product in products:
        qty = product.stock or 0
        if qty <= 0:
            out_of_stock += 1
        elif product.is_low_stock:
            low_stock += 1
        else:
            in_stock += 1

        total_value += qty * float(product.cost_price or 0)

    return {
        'total_products': total_products,
        'in_stock': in_stock,
        'low_stock': low_stock,
        'out_of_stock': out_of_stock,
        'total_value': round(total_value, 2),
        'stock_health_percent': round((in_stock / total_products * 100) if total_products > 0 else 0, 1)
    }

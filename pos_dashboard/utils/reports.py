"""
Report Queries
Sales, stock, profit and best-seller aggregations used by the reports blueprint
"""

from datetime import datetime, time, timedelta
from sqlalchemy import func
from pos_dashboard.models import db, Sale, SaleItem, Product, Customer


def _filter_range(query, column, start_date, end_date):
    if start_date is not None:
        query = query.filter(column >= datetime.combine(start_date, time.min))
    if end_date is not None:
        query = query.filter(column < datetime.combine(end_date + timedelta(days=1), time.min))
    return query


def sales_report(start_date=None, end_date=None, limit=50):
    """
    Sales in a date range, newest first, with totals

    Args:
        start_date: First day (inclusive) or None for no lower bound
        end_date: Last day (inclusive) or None for no upper bound
        limit: Maximum number of sales listed (totals cover all)

    Returns:
        dict: sales, count, total_revenue, total_gst, total_discount,
            payment_methods
    """
    query = _filter_range(Sale.query, Sale.created_at, start_date, end_date)
    all_sales = query.order_by(Sale.created_at.desc(), Sale.id.desc()).all()

    payment_methods = {}
    for sale in all_sales:
        payment_methods[sale.payment_method] = payment_methods.get(sale.payment_method, 0) + float(sale.total or 0)

    return {
        'sales': [sale.to_dict(include_items=True) for sale in all_sales[:limit]],
        'count': len(all_sales),
        'total_revenue': round(sum(float(s.total or 0) for s in all_sales), 2),
        'total_gst': round(sum(float(s.gst_amount or 0) for s in all_sales), 2),
        'total_discount': round(sum(float(s.discount_amount) for s in all_sales), 2),
        'payment_methods': payment_methods,
    }


def stock_report():
    """All active products ordered by stock ascending"""
    products = Product.query.filter_by(is_active=True)\
        .order_by(Product.stock.asc(), Product.name.asc()).all()
    return [product.to_dict() for product in products]


def profit_summary(start_date=None, end_date=None):
    """
    Revenue, cost of goods sold and gross profit

    Cost of goods uses each product's current cost price.
    """
    sales_query = _filter_range(
        db.session.query(
            func.coalesce(func.sum(Sale.total), 0),
            func.coalesce(func.sum(Sale.gst_amount), 0),
            func.coalesce(func.sum(Sale.tier_discount + Sale.points_discount), 0),
            func.count(Sale.id),
        ),
        Sale.created_at, start_date, end_date
    )
    revenue, gst, discounts, count = sales_query.one()

    cost_query = _filter_range(
        db.session.query(
            func.coalesce(func.sum(SaleItem.quantity * Product.cost_price), 0)
        ).join(Sale, SaleItem.sale_id == Sale.id)
         .join(Product, SaleItem.product_id == Product.id),
        Sale.created_at, start_date, end_date
    )
    cost_of_goods = cost_query.scalar()

    revenue = float(revenue or 0)
    gst = float(gst or 0)
    cost_of_goods = float(cost_of_goods or 0)
    net_revenue = revenue - gst
    gross_profit = net_revenue - cost_of_goods

    return {
        'sales_count': int(count or 0),
        'revenue': round(revenue, 2),
        'gst_collected': round(gst, 2),
        'discounts_given': round(float(discounts or 0), 2),
        'net_revenue': round(net_revenue, 2),
        'cost_of_goods': round(cost_of_goods, 2),
        'gross_profit': round(gross_profit, 2),
        'profit_margin_percent': round(gross_profit / net_revenue * 100, 2) if net_revenue > 0 else 0,
    }


def best_sellers(start_date=None, end_date=None, limit=10):
    """Top products by quantity sold"""
    query = _filter_range(
        db.session.query(
            SaleItem.product_id,
            func.max(SaleItem.product_name).label('product_name'),
            func.sum(SaleItem.quantity).label('total_quantity'),
            func.sum(SaleItem.quantity * SaleItem.price).label('total_revenue'),
        ).join(Sale, SaleItem.sale_id == Sale.id),
        Sale.created_at, start_date, end_date
    )
    rows = query.group_by(SaleItem.product_id)\
        .order_by(func.sum(SaleItem.quantity).desc(), SaleItem.product_id.asc())\
        .limit(limit).all()

    return [
        {
            'product_id': row.product_id,
            'product_name': row.product_name,
            'total_quantity': int(row.total_quantity or 0),
            'total_revenue': round(float(row.total_revenue or 0), 2),
        }
        for row in rows
    ]


def dashboard_summary(day=None):
    """Headline counters for the dashboard"""
    day = day or datetime.now().date()

    today_query = _filter_range(Sale.query, Sale.created_at, day, day)
    today_sales = today_query.all()

    customers_today = _filter_range(
        db.session.query(func.count(func.distinct(Sale.customer_id))),
        Sale.created_at, day, day
    ).filter(Sale.customer_id.isnot(None)).scalar()

    return {
        'date': day.isoformat(),
        'sales_today': len(today_sales),
        'revenue_today': round(sum(float(s.total or 0) for s in today_sales), 2),
        'total_sales': Sale.query.count(),
        'products_in_stock': Product.query.filter(Product.is_active == True, Product.stock > 0).count(),
        'customers': Customer.query.count(),
        'customers_today': int(customers_today or 0),
    }

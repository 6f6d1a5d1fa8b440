"""
Helper Utilities
Common utility functions used across the application
"""

from flask import request
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
import random
import string

CENTS = Decimal('0.01')


def generate_sale_number():
    """
    Generate unique sale number

    Format: INV-YYYYMMDD-XXXXXX
    Where XXXXXX is a random 6-digit number

    Returns:
        str: Sale number
    """
    date_part = datetime.now().strftime('%Y%m%d')
    random_part = ''.join(random.choices(string.digits, k=6))
    return f"INV-{date_part}-{random_part}"

def generate_product_code():
    """
    Generate product code

    Format: PROD-XXXXXXXX (8 random alphanumeric characters)
    """
    random_part = ''.join(random.choices(string.ascii_uppercase + string.digits, k=8))
    return f"PROD-{random_part}"

def quantize_money(amount):
    """Round a Decimal amount to 2 places for storage and display"""
    return Decimal(amount).quantize(CENTS, rounding=ROUND_HALF_UP)

def get_request_data():
    """JSON body if present, else form data, as a plain dict"""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()

def parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')

def get_date_range(period='today'):
    """
    Get date range for reporting

    Args:
        period: today, yesterday, week, month, all

    Returns:
        tuple: (start_date, end_date); (None, None) for all
    """
    today = datetime.now().date()

    if period == 'today':
        return today, today

    elif period == 'yesterday':
        yesterday = today - timedelta(days=1)
        return yesterday, yesterday

    elif period == 'week':
        return today - timedelta(days=6), today

    elif period == 'month':
        return today - timedelta(days=29), today

    elif period == 'all':
        return None, None

    raise ValueError(f'Unknown period: {period}')

"""
Reports Routes
Sales, stock, profit and best-seller reports for admins and managers
"""

from flask import Blueprint, request, jsonify
from flask_login import login_required
from pos_dashboard.errors import ValidationError
from pos_dashboard.utils.helpers import get_date_range
from pos_dashboard.utils.permissions import permission_required, Permissions
from pos_dashboard.utils import reports

bp = Blueprint('reports', __name__)


def _requested_range(default='today'):
    period = request.args.get('range', default)
    try:
        start_date, end_date = get_date_range(period)
    except ValueError:
        raise ValidationError('Range must be one of: today, yesterday, week, month, all', field='range')
    return period, start_date, end_date


@bp.route('/sales')
@login_required
@permission_required(Permissions.REPORTS_VIEW)
def sales():
    period, start_date, end_date = _requested_range()
    data = reports.sales_report(start_date, end_date)
    data['range'] = period
    return jsonify(data)


@bp.route('/stock')
@login_required
@permission_required(Permissions.REPORTS_VIEW)
def stock():
    return jsonify({'products': reports.stock_report()})


@bp.route('/profit')
@login_required
@permission_required(Permissions.REPORTS_VIEW)
def profit():
    period, start_date, end_date = _requested_range('month')
    data = reports.profit_summary(start_date, end_date)
    data['range'] = period
    return jsonify(data)


@bp.route('/best-sellers')
@login_required
@permission_required(Permissions.REPORTS_VIEW)
def best_sellers():
    period, start_date, end_date = _requested_range('month')
    limit = request.args.get('limit', 10, type=int)
    return jsonify({'range': period, 'products': reports.best_sellers(start_date, end_date, limit)})


@bp.route('/dashboard')
@login_required
@permission_required(Permissions.REPORTS_VIEW)
def dashboard():
    """Headline counters plus today's stock alert count"""
    from pos_dashboard.utils.stock_alerts import get_low_stock_alerts

    data = reports.dashboard_summary()
    data['low_stock_count'] = len(get_low_stock_alerts())
    return jsonify(data)

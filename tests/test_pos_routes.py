"""
Tests for POS Routes
Billing screen flow over HTTP: cart, scanning, customer, redemption,
payment method and checkout.

Covers:
1. Authentication and permission checks
2. Cart operations and their rejections
3. Barcode scan cooldown
4. Customer selection and points redemption
5. Checkout and invoice
"""

import pytest
from decimal import Decimal

from pos_dashboard.models import db, Sale, Customer


def add(client, product_id, quantity=1):
    return client.post('/pos/cart/add', json={'product_id': product_id, 'quantity': quantity})


def money(value):
    return Decimal(value)


@pytest.fixture
def billed(auth_cashier, tea, honey):
    """Cashier with 25 x 2 and 60 x 1 in the cart."""
    add(auth_cashier, tea.id, 2)
    add(auth_cashier, honey.id, 1)
    return auth_cashier


# ============================================================================
# ACCESS
# ============================================================================

class TestPosAccess:

    def test_requires_login(self, client, init_database):
        response = client.get('/pos/')
        assert response.status_code == 401
        assert response.get_json()['success'] is False

    def test_cashier_can_open_billing(self, auth_cashier):
        response = auth_cashier.get('/pos/')
        assert response.status_code == 200
        data = response.get_json()
        assert data['items'] == []
        assert money(data['breakdown']['total']) == 0

    def test_inactive_user_cannot_login(self, client, init_database):
        response = client.post('/auth/login', data={'username': 'inactive', 'password': 'inactive123'})
        assert response.status_code == 403


# ============================================================================
# CART
# ============================================================================

class TestCart:

    def test_add_by_id(self, auth_cashier, tea):
        response = add(auth_cashier, tea.id, 2)
        assert response.status_code == 200
        data = response.get_json()
        assert data['line']['quantity'] == 2
        assert money(data['breakdown']['subtotal']) == 50

    def test_add_by_search_term(self, auth_cashier, honey):
        response = auth_cashier.post('/pos/cart/add', json={'query': 'honey'})
        assert response.status_code == 200
        assert response.get_json()['items'][0]['product_id'] == honey.id

    def test_add_unknown_product(self, auth_cashier):
        response = auth_cashier.post('/pos/cart/add', json={'query': 'no such thing'})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Product not found'

    def test_add_out_of_stock(self, auth_cashier, soap):
        response = add(auth_cashier, soap.id)
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Product out of stock'
        assert auth_cashier.get('/pos/').get_json()['items'] == []

    def test_add_beyond_stock_keeps_cart(self, auth_cashier, honey):
        add(auth_cashier, honey.id, 3)
        response = add(auth_cashier, honey.id, 1)
        assert response.status_code == 400
        items = auth_cashier.get('/pos/').get_json()['items']
        assert items[0]['quantity'] == 3

    def test_breakdown_for_two_lines(self, billed):
        breakdown = billed.get('/pos/breakdown').get_json()['breakdown']
        assert money(breakdown['subtotal']) == 110
        assert money(breakdown['tax_total']) == Decimal('5.5')
        assert money(breakdown['total']) == Decimal('115.5')

    def test_update_quantity(self, billed, tea):
        response = billed.post(f'/pos/cart/{tea.id}/quantity', json={'quantity': 4})
        assert response.status_code == 200
        assert money(response.get_json()['breakdown']['subtotal']) == 160

    def test_quantity_zero_removes_line(self, billed, tea, honey):
        response = billed.post(f'/pos/cart/{tea.id}/quantity', json={'quantity': 0})
        items = response.get_json()['items']
        assert [item['product_id'] for item in items] == [honey.id]

    def test_quantity_beyond_stock(self, billed, honey):
        response = billed.post(f'/pos/cart/{honey.id}/quantity', json={'quantity': 4})
        assert response.status_code == 400

    def test_quantity_for_deactivated_product(self, billed, honey):
        honey.is_active = False
        db.session.commit()
        response = billed.post(f'/pos/cart/{honey.id}/quantity', json={'quantity': 2})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'product_id'
        lines = {item['product_id']: item['quantity'] for item in billed.get('/pos/').get_json()['items']}
        assert lines[honey.id] == 1

    def test_remove_line(self, billed, honey):
        response = billed.delete(f'/pos/cart/{honey.id}')
        assert len(response.get_json()['items']) == 1

    def test_clear(self, billed):
        response = billed.post('/pos/cart/clear')
        assert response.get_json()['items'] == []

    def test_search(self, auth_cashier, tea):
        data = auth_cashier.get('/pos/search?q=1234567890123').get_json()
        assert data['product']['id'] == tea.id


# ============================================================================
# SCANNING
# ============================================================================

class TestScan:

    def test_scan_adds_product(self, auth_cashier, tea):
        response = auth_cashier.post('/pos/scan', json={'code': '1234567890123\n'})
        assert response.status_code == 200
        assert response.get_json()['items'][0]['product_id'] == tea.id

    def test_repeat_scan_inside_cooldown_ignored(self, auth_cashier, tea):
        auth_cashier.post('/pos/scan', json={'code': '1234567890123'})
        response = auth_cashier.post('/pos/scan', json={'code': '1234567890123'})
        assert response.get_json() == {'success': True, 'ignored': True}
        assert auth_cashier.get('/pos/').get_json()['items'][0]['quantity'] == 1

    def test_scan_after_cooldown_increments(self, auth_cashier, tea, fresh_app):
        fresh_app.config['SCAN_COOLDOWN_SECONDS'] = 0
        auth_cashier.post('/pos/scan', json={'code': '1234567890123'})
        auth_cashier.post('/pos/scan', json={'code': '1234567890123'})
        assert auth_cashier.get('/pos/').get_json()['items'][0]['quantity'] == 2

    def test_unknown_code(self, auth_cashier):
        response = auth_cashier.post('/pos/scan', json={'code': '0000000000000'})
        assert response.status_code == 400

    def test_failed_scan_still_starts_cooldown(self, auth_cashier, soap):
        first = auth_cashier.post('/pos/scan', json={'code': 'PRD003'})
        assert first.status_code == 400
        second = auth_cashier.post('/pos/scan', json={'code': 'PRD003'})
        assert second.status_code == 200
        assert second.get_json().get('ignored') is True
        assert auth_cashier.get('/pos/').get_json()['items'] == []

    def test_empty_code(self, auth_cashier):
        response = auth_cashier.post('/pos/scan', json={'code': '   '})
        assert response.status_code == 400


# ============================================================================
# CUSTOMER AND REDEMPTION
# ============================================================================

class TestCustomerAndRedemption:

    def test_tier_discount_applied(self, billed, gold_customer):
        response = billed.post('/pos/customer', json={'customer_id': gold_customer.id})
        data = response.get_json()
        assert data['customer']['tier']['tier_name'] == 'Gold'
        assert money(data['breakdown']['tier_discount']) == 11
        assert money(data['breakdown']['total']) == Decimal('104.5')

    def test_redeem_points(self, billed, gold_customer):
        billed.post('/pos/customer', json={'customer_id': gold_customer.id})
        response = billed.post('/pos/redemption', json={'points': 200})
        breakdown = response.get_json()['breakdown']
        assert money(breakdown['points_discount']) == 20
        assert money(breakdown['total']) == Decimal('84.5')

    def test_redeem_over_balance_rejected(self, billed, bronze_customer):
        billed.post('/pos/customer', json={'customer_id': bronze_customer.id})
        response = billed.post('/pos/redemption', json={'points': 150})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'points_to_redeem'
        assert billed.get('/pos/').get_json()['points_to_redeem'] == 0

    def test_redeem_without_customer_rejected(self, billed):
        response = billed.post('/pos/redemption', json={'points': 100})
        assert response.status_code == 400

    def test_redeem_partial_unit_rejected(self, billed, gold_customer):
        billed.post('/pos/customer', json={'customer_id': gold_customer.id})
        response = billed.post('/pos/redemption', json={'points': 37})
        assert response.status_code == 400

    def test_max_redeemable_points_in_state(self, billed, gold_customer, bronze_customer):
        assert billed.get('/pos/').get_json()['max_redeemable_points'] == 0
        data = billed.post('/pos/customer', json={'customer_id': gold_customer.id}).get_json()
        # 104.5 payable covers 1045 points of the 1200 balance
        assert data['max_redeemable_points'] == 1040
        response = billed.post('/pos/redemption', json={'points': data['max_redeemable_points']})
        assert response.status_code == 200
        assert money(response.get_json()['breakdown']['total']) == Decimal('0.5')
        data = billed.post('/pos/customer', json={'customer_id': bronze_customer.id}).get_json()
        assert data['max_redeemable_points'] == 100

    def test_changing_customer_resets_redemption(self, billed, gold_customer, bronze_customer):
        billed.post('/pos/customer', json={'customer_id': gold_customer.id})
        billed.post('/pos/redemption', json={'points': 200})
        data = billed.post('/pos/customer', json={'customer_id': bronze_customer.id}).get_json()
        assert data['points_to_redeem'] == 0

    def test_clear_customer(self, billed, gold_customer):
        billed.post('/pos/customer', json={'customer_id': gold_customer.id})
        data = billed.delete('/pos/customer').get_json()
        assert data['customer'] is None
        assert money(data['breakdown']['tier_discount']) == 0

    def test_unknown_customer(self, billed):
        response = billed.post('/pos/customer', json={'customer_id': 9999})
        assert response.status_code == 400
        assert billed.get('/pos/').get_json()['customer'] is None

    def test_removing_lines_cannot_push_total_negative(self, auth_cashier, tea, honey, gold_customer):
        add(auth_cashier, tea.id, 1)
        add(auth_cashier, honey.id, 1)
        auth_cashier.post('/pos/customer', json={'customer_id': gold_customer.id})
        auth_cashier.post('/pos/redemption', json={'points': 500})

        response = auth_cashier.delete(f'/pos/cart/{honey.id}')

        assert response.status_code == 400
        assert len(auth_cashier.get('/pos/').get_json()['items']) == 2


# ============================================================================
# PAYMENT AND CHECKOUT
# ============================================================================

class TestCheckout:

    def test_payment_method(self, billed):
        data = billed.post('/pos/payment-method', json={'payment_method': 'card'}).get_json()
        assert data['payment_method'] == 'card'

    def test_invalid_payment_method(self, billed):
        response = billed.post('/pos/payment-method', json={'payment_method': 'barter'})
        assert response.status_code == 400

    def test_checkout_walk_in(self, billed, tea):
        response = billed.post('/pos/checkout', json={'payment_method': 'cash'})
        assert response.status_code == 201
        data = response.get_json()
        assert data['sale']['total'] == 115.5
        assert data['invoice']['invoice_number'] == data['sale']['sale_number']
        assert tea.stock == 98
        assert billed.get('/pos/').get_json()['items'] == []

    def test_checkout_with_loyalty(self, billed, gold_customer):
        billed.post('/pos/customer', json={'customer_id': gold_customer.id})
        billed.post('/pos/redemption', json={'points': 200})
        data = billed.post('/pos/checkout').get_json()

        assert data['sale']['total'] == 84.5
        assert data['sale']['points_earned'] == 12
        assert db.session.get(Customer, gold_customer.id).total_points == 1012

    def test_checkout_empty_cart(self, auth_cashier, init_database):
        response = auth_cashier.post('/pos/checkout')
        assert response.status_code == 400
        assert Sale.query.count() == 0

    def test_failed_checkout_keeps_cart(self, billed, honey):
        honey.stock = 0
        db.session.commit()

        response = billed.post('/pos/checkout')

        assert response.status_code == 400
        assert len(billed.get('/pos/').get_json()['items']) == 2

    def test_invoice_lookup(self, billed):
        sale_id = billed.post('/pos/checkout').get_json()['sale']['id']
        response = billed.get(f'/pos/invoice/{sale_id}')
        assert response.status_code == 200
        assert response.get_json()['invoice']['total'] == 115.5

    def test_invoice_not_found(self, auth_cashier):
        assert auth_cashier.get('/pos/invoice/9999').status_code == 404

"""
Tests for Customer Routes

Covers:
1. Phone lookup and registration from the till
2. Admin-only list, delete and loyalty ledger
3. Loyalty tier listing
"""

from pos_dashboard.models import db, Customer, LoyaltyTransaction


class TestCustomerLookup:

    def test_search_by_phone(self, auth_cashier, gold_customer):
        data = auth_cashier.get('/customers/search?phone=1234567').get_json()
        assert gold_customer.id in [c['id'] for c in data['customers']]

    def test_search_returns_at_most_five(self, auth_cashier, init_database):
        for i in range(7):
            db.session.add(Customer(name=f'Bulk {i}', phone=f'0311000000{i}'))
        db.session.commit()
        data = auth_cashier.get('/customers/search?phone=0311').get_json()
        assert len(data['customers']) == 5

    def test_blank_search_is_empty(self, auth_cashier):
        assert auth_cashier.get('/customers/search?phone=').get_json()['customers'] == []

    def test_view_customer_with_tier(self, auth_cashier, gold_customer):
        data = auth_cashier.get(f'/customers/{gold_customer.id}').get_json()
        assert data['customer']['tier']['tier_name'] == 'Gold'
        assert data['customer']['total_purchases'] == 0

    def test_view_unknown_customer(self, auth_cashier):
        assert auth_cashier.get('/customers/9999').status_code == 404


class TestCustomerRegistration:

    def test_register_customer(self, auth_cashier):
        response = auth_cashier.post('/customers/', json={'name': 'Walk In', 'phone': '03110000001'})
        assert response.status_code == 201
        customer = response.get_json()['customer']
        assert customer['total_points'] == 0
        assert customer['tier']['tier_name'] == 'Bronze'

    def test_name_required(self, auth_cashier):
        response = auth_cashier.post('/customers/', json={'phone': '03110000001'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'name'

    def test_phone_required(self, auth_cashier):
        response = auth_cashier.post('/customers/', json={'name': 'No Phone'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'phone'

    def test_duplicate_phone_rejected(self, auth_cashier, gold_customer):
        response = auth_cashier.post('/customers/', json={'name': 'Copy', 'phone': gold_customer.phone})
        assert response.status_code == 400


class TestCustomerAdministration:

    def test_cashier_cannot_list_customers(self, auth_cashier):
        assert auth_cashier.get('/customers/').status_code == 403

    def test_manager_cannot_list_customers(self, auth_manager):
        assert auth_manager.get('/customers/').status_code == 403

    def test_admin_lists_customers_with_tiers(self, auth_admin):
        data = auth_admin.get('/customers/').get_json()
        assert data['total'] == 3
        assert all('tier' in c for c in data['customers'])

    def test_admin_deletes_customer(self, auth_admin, bronze_customer):
        customer_id = bronze_customer.id
        response = auth_admin.delete(f'/customers/{customer_id}')
        assert response.status_code == 200
        assert db.session.get(Customer, customer_id) is None

    def test_cashier_cannot_delete(self, auth_cashier, bronze_customer):
        assert auth_cashier.delete(f'/customers/{bronze_customer.id}').status_code == 403

    def test_ledger_after_checkout(self, auth_admin, gold_customer, tea):
        auth_admin.post('/pos/cart/add', json={'product_id': tea.id, 'quantity': 4})
        auth_admin.post('/pos/customer', json={'customer_id': gold_customer.id})
        auth_admin.post('/pos/redemption', json={'points': 100})
        auth_admin.post('/pos/checkout')

        data = auth_admin.get(f'/customers/{gold_customer.id}/ledger').get_json()
        types = sorted(t['transaction_type'] for t in data['transactions'])
        assert types == ['earn', 'redeem']
        assert LoyaltyTransaction.query.count() == 2

    def test_tiers(self, auth_cashier):
        tiers = auth_cashier.get('/customers/tiers').get_json()['tiers']
        assert [t['tier_name'] for t in tiers] == ['Bronze', 'Silver', 'Gold', 'Platinum']

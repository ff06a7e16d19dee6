import io
import time
from datetime import datetime

import pandas as pd
import pytest

from business_portal import db
from business_portal.errors import ValidationFailed
from business_portal.models import Product, Transaction, Order
from business_portal.services import inventory, checkout


@pytest.fixture()
def products(app, admin):
    return {
        'baut': inventory.create_product('Baut M3', 'R1-01', stock=10, low_stock_threshold=5, user=admin),
        'mur': inventory.create_product('Mur M3', 'R1-02', stock=3, low_stock_threshold=5, user=admin),
    }


def test_initial_stock_is_ledgered(products):
    ledger = Transaction.query.filter_by(product_id=products['baut'].id).all()
    assert [(t.type, t.quantity, t.description) for t in ledger] == [('IN', 10, 'Initial stock')]


def test_duplicate_sku(products):
    with pytest.raises(ValidationFailed, match='SKU R1-01 already exists'):
        inventory.create_product('Lain', 'R1-01')


def test_low_stock(products):
    assert [p.sku for p in inventory.low_stock_products()] == ['R1-02']
    assert products['mur'].to_dict()['isLowStock'] is True


def test_add_stock(products, admin):
    inventory.add_stock(products['mur'].id, 7, user=admin, description='PO-12')
    assert products['mur'].stock == 10
    latest = inventory.transaction_history(product_id=products['mur'].id)[0]
    assert (latest.type, latest.quantity, latest.description) == ('IN', 7, 'PO-12')
    with pytest.raises(ValidationFailed):
        inventory.add_stock(products['mur'].id, 0)


def test_checkout_merges_lines_and_snapshots(products, employee):
    order = checkout.process_checkout([
        {'productId': products['baut'].id, 'quantity': 2},
        {'productId': products['baut'].id, 'quantity': 3},
        {'productId': products['mur'].id, 'quantity': 1},
    ], employee)

    assert order.order_number.startswith('ORD-')
    assert order.order_number.endswith('-001')
    assert products['baut'].stock == 5
    assert products['mur'].stock == 2
    lines = {i.product_sku: i.quantity for i in order.items}
    assert lines == {'R1-01': 5, 'R1-02': 1}

    out = Transaction.query.filter_by(type='OUT').all()
    assert {t.description for t in out} == {f'Checkout via POS - {order.order_number}'}

    second = checkout.process_checkout([{'productId': products['baut'].id, 'quantity': 1}], employee)
    assert second.order_number.endswith('-002')


def test_order_numbers_follow_the_utc_day(app):
    late = datetime(2026, 3, 2, 23, 30)
    db.session.add(Order(order_number='ORD-20260302-001', created_at=late))
    db.session.commit()

    assert checkout.generate_order_number(now=datetime(2026, 3, 2, 23, 45)) == 'ORD-20260302-002'
    assert checkout.generate_order_number(now=datetime(2026, 3, 3, 0, 5)) == 'ORD-20260303-001'


@pytest.mark.parametrize('zone', ['Etc/GMT+12', 'Etc/GMT-14'])
def test_order_numbers_stay_unique_when_local_day_differs(products, employee, monkeypatch, zone):
    # At any moment one of these zones sits on a different calendar day than UTC
    monkeypatch.setenv('TZ', zone)
    time.tzset()
    try:
        first = checkout.process_checkout([{'productId': products['baut'].id, 'quantity': 1}], employee)
        second = checkout.process_checkout([{'productId': products['baut'].id, 'quantity': 1}], employee)
    finally:
        monkeypatch.undo()
        time.tzset()

    assert first.order_number != second.order_number
    assert second.order_number == f"ORD-{datetime.utcnow():%Y%m%d}-002"


def test_checkout_is_all_or_nothing(products, employee):
    with pytest.raises(ValidationFailed, match='Insufficient stock for Mur M3. Available: 3, Requested: 4'):
        checkout.process_checkout([
            {'productId': products['baut'].id, 'quantity': 1},
            {'productId': products['mur'].id, 'quantity': 4},
        ], employee)
    assert products['baut'].stock == 10
    assert Order.query.count() == 0


def test_checkout_endpoint(employee_client, products):
    response = employee_client.post('/inventory/checkout', json={'items': []})
    assert response.get_json() == {'error': 'No items to checkout'}

    response = employee_client.post('/inventory/checkout',
                                    json={'items': [{'productId': products['baut'].id, 'quantity': 2}]})
    assert response.status_code == 201
    order = response.get_json()['order']
    assert order['items'][0]['productName'] == 'Baut M3'
    assert len(employee_client.get('/inventory/orders').get_json()) == 1


def test_product_endpoints_need_stock_roles(employee_client, admin_client):
    data = {'name': 'Kabel', 'sku': 'R2-01', 'stock': '4'}
    assert employee_client.post('/inventory/products', data=data).status_code == 403
    response = admin_client.post('/inventory/products', data=data)
    assert response.status_code == 201
    assert response.get_json()['stock'] == 4
    assert [p['sku'] for p in employee_client.get('/inventory/products?q=kab').get_json()] == ['R2-01']


def test_export_then_import_products(admin_client, products):
    exported = admin_client.get('/inventory/products/export')
    df = pd.read_excel(io.BytesIO(exported.data))
    assert list(df.columns) == ['Name', 'SKU', 'Stock', 'Low Stock Threshold', 'Notes']

    df.loc[df['SKU'] == 'R1-02', 'Stock'] = 8
    df.loc[len(df)] = ['Ring M3', 'R1-03', 20, 2, 'baru']
    upload = io.BytesIO()
    df.to_excel(upload, index=False)
    upload.seek(0)

    response = admin_client.post('/inventory/products/import', data={'file': (upload, 'products.xlsx')},
                                 content_type='multipart/form-data')
    assert response.get_json() == {'success': True, 'created': 1, 'updated': 2}

    db.session.expire_all()
    assert Product.query.filter_by(sku='R1-02').one().stock == 8
    assert Product.query.filter_by(sku='R1-03').one().notes == 'baru'
    imported = Transaction.query.filter_by(description='Spreadsheet import').all()
    assert sorted((t.type, t.quantity) for t in imported) == [('IN', 5), ('IN', 20)]

import io

import pandas as pd
import pytest

from business_portal import db
from business_portal.errors import ValidationFailed
from business_portal.models import Product, Transaction
from business_portal.services import catalogue, inventory, production


@pytest.fixture()
def recipe(app):
    board = inventory.create_product('PCB Controller', 'R1-01', stock=5)
    case = inventory.create_product('Casing', 'R1-02', stock=1)
    recipe = catalogue.create_recipe('Smart Lock', 'Unit kunci pintu')
    catalogue.add_ingredient(recipe.id, board.id, quantity=2)
    catalogue.add_ingredient(recipe.id, case.id, quantity=1)
    return recipe


@pytest.fixture()
def plan(recipe):
    return production.create_production_plan(recipe.id, 3, 3, 2026)


def ingredient(recipe, sku):
    return next(i for i in recipe.ingredients if i.product.sku == sku)


def test_plan_creates_numbered_units(plan):
    assert [u.unit_number for u in plan.units] == [1, 2, 3]
    assert all(u.is_empty for u in plan.units)


def test_one_plan_per_recipe_and_period(plan, recipe):
    with pytest.raises(ValidationFailed, match='Plan for this product already exists in this period'):
        production.create_production_plan(recipe.id, 1, 3, 2026)
    production.create_production_plan(recipe.id, 1, 4, 2026)


def test_toggle_moves_stock_both_ways(plan, recipe, admin):
    unit = plan.units[0]
    board = ingredient(recipe, 'R1-01')

    production.toggle_unit_ingredient(unit.id, board.id, True, user=admin)
    assert board.product.stock == 3
    assert unit.completed_ids == [board.id]

    # Same state again changes nothing
    production.toggle_unit_ingredient(unit.id, board.id, True, user=admin)
    assert board.product.stock == 3

    production.toggle_unit_ingredient(unit.id, board.id, False, user=admin)
    assert board.product.stock == 5
    assert unit.completed_ids == []

    ledger = Transaction.query.filter(Transaction.description.like('Production%')).order_by(Transaction.id).all()
    assert [(t.type, t.quantity) for t in ledger] == [('OUT', 2), ('IN', 2)]
    assert ledger[1].description.endswith('(returned)')


def test_toggle_refuses_when_stock_is_short(plan, recipe):
    case = ingredient(recipe, 'R1-02')
    production.toggle_unit_ingredient(plan.units[0].id, case.id, True)
    with pytest.raises(ValidationFailed, match='Insufficient stock for Casing'):
        production.toggle_unit_ingredient(plan.units[1].id, case.id, True)
    assert case.product.stock == 0
    assert plan.units[1].completed_ids == []


def test_completed_units(plan, recipe):
    unit = plan.units[0]
    for item in recipe.ingredients:
        production.toggle_unit_ingredient(unit.id, item.id, True)
    assert plan.completed_units == 1
    overview = production.production_overview(2026)
    assert overview['months'][2] == {'month': 3, 'target': 3, 'completed': 1}


def test_growing_a_plan_appends_units(plan):
    production.update_production_plan_quantity(plan.id, 5)
    assert [u.unit_number for u in plan.units] == [1, 2, 3, 4, 5]
    assert plan.quantity == 5


def test_shrinking_removes_highest_empty_units(plan):
    production.update_unit_custom_id(plan.units[2].id, 'SL-003')
    production.update_production_plan_quantity(plan.id, 2)
    assert [u.unit_number for u in plan.units] == [1, 3]


def test_shrinking_blocked_by_used_units(plan, recipe):
    production.update_unit_sales_data(plan.units[0].id, is_sold=True)
    production.update_unit_identifier(plan.units[1].id, 'SN-42')
    with pytest.raises(ValidationFailed) as excinfo:
        production.update_production_plan_quantity(plan.id, 1)
    assert str(excinfo.value) == ('Cannot reduce target. Only 1 empty units found. '
                                  'Blocking unit #2: Serial set (SN-42)')
    assert plan.quantity == 3
    assert len(plan.units) == 3


def test_quantity_below_one_is_ignored(plan):
    assert production.update_production_plan_quantity(plan.id, 0) is None
    assert plan.quantity == 3


def test_plan_endpoints(admin_client, recipe):
    response = admin_client.post('/inventory/production-plans', data={
        'recipe': str(recipe.id), 'quantity': '2', 'month': '3', 'year': '2026'})
    assert response.status_code == 201
    plan = response.get_json()
    assert len(plan['units']) == 2

    detail = admin_client.get(f"/inventory/production-plans/{plan['id']}").get_json()
    assert {i['sku'] for i in detail['ingredients']} == {'R1-01', 'R1-02'}

    unit_id = plan['units'][0]['id']
    ingredient_id = detail['ingredients'][0]['id']
    toggled = admin_client.post(f'/inventory/units/{unit_id}/ingredients/{ingredient_id}',
                                json={'completed': True}).get_json()
    assert toggled['completed'] == [ingredient_id]

    sales = admin_client.post(f'/inventory/units/{unit_id}/sales',
                              data={'is_packed': 'y', 'marketplace': 'Tokopedia'}).get_json()
    assert sales['isPacked'] is True
    assert sales['marketplace'] == 'Tokopedia'

    response = admin_client.post(f"/inventory/production-plans/{plan['id']}/quantity", data={'quantity': '1'})
    assert response.status_code == 200
    assert response.get_json()['quantity'] == 1

    unknown = admin_client.post('/inventory/production-plans', data={
        'recipe': '999', 'quantity': '2', 'month': '4', 'year': '2026'})
    assert unknown.status_code == 400


def test_export_plans(app, plan):
    book = pd.read_excel(production.export_production_plans(3, 2026), sheet_name=None)
    assert list(book) == ['Plans', 'Units']
    assert book['Plans'].loc[0, 'Target'] == 3
    assert len(book['Units']) == 3


def test_product_used_by_a_recipe_cannot_be_deleted(plan, recipe):
    board = ingredient(recipe, 'R1-01')
    with pytest.raises(ValidationFailed, match='used in recipe'):
        inventory.delete_product(board.product_id)

    # The ingredient still works against the product's stock
    unit = plan.units[0]
    production.toggle_unit_ingredient(unit.id, board.id, True)
    assert board.product.stock == 3


def test_delete_product_endpoint_after_removing_the_ingredient(admin_client, recipe):
    board = ingredient(recipe, 'R1-01')
    product_id, ingredient_id = board.product_id, board.id

    response = admin_client.delete(f'/inventory/products/{product_id}')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Product is used in recipe(s): Smart Lock. Remove it from them first'

    assert admin_client.delete(f'/inventory/ingredients/{ingredient_id}').status_code == 200
    assert admin_client.delete(f'/inventory/products/{product_id}').status_code == 200
    db.session.expunge_all()
    assert db.session.get(Product, product_id) is None

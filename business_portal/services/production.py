"""
Production plans and the per-unit ingredient ledger.

Each plan targets ``quantity`` units of a recipe for one month. A unit keeps
the ids of the recipe ingredients already built into it; marking an
ingredient consumes stock, un-marking returns it, and both movements are
written to the stock transaction ledger in the same database transaction.
"""
import logging
from datetime import date

from business_portal import db
from business_portal.models import ProductionPlan, ProductionUnit, RecipeIngredient, Product, Transaction
from business_portal.errors import ValidationFailed, NotFound
from business_portal.excel import export_production_plans_to_excel
from business_portal.services.catalogue import get_recipe

logger = logging.getLogger(__name__)


def get_plan(plan_id):
    plan = db.session.get(ProductionPlan, plan_id)
    if plan is None:
        raise NotFound('Production plan not found')
    return plan


def get_unit(unit_id):
    unit = db.session.get(ProductionUnit, unit_id)
    if unit is None:
        raise NotFound('Production unit not found')
    return unit


def list_plans(month=None, year=None):
    query = ProductionPlan.query
    if month:
        query = query.filter_by(month=month)
    if year:
        query = query.filter_by(year=year)
    return query.order_by(ProductionPlan.year.desc(), ProductionPlan.month.desc(), ProductionPlan.id).all()


def create_production_plan(recipe_id, quantity, month, year):
    recipe = get_recipe(recipe_id)
    quantity = int(quantity)
    if quantity < 1:
        raise ValidationFailed('Quantity must be at least 1')
    if not 1 <= int(month) <= 12:
        raise ValidationFailed('Invalid month')
    if ProductionPlan.query.filter_by(recipe_id=recipe.id, month=month, year=year).first():
        raise ValidationFailed('Plan for this product already exists in this period')

    plan = ProductionPlan(recipe_id=recipe.id, quantity=quantity, month=month, year=year)
    plan.units = [ProductionUnit(unit_number=n, completed='[]') for n in range(1, quantity + 1)]
    db.session.add(plan)
    db.session.commit()
    return plan


def delete_production_plan(plan_id):
    plan = get_plan(plan_id)
    db.session.delete(plan)
    db.session.commit()


def update_unit_identifier(unit_id, identifier):
    unit = get_unit(unit_id)
    unit.product_identifier = (identifier or '').strip() or None
    db.session.commit()
    return unit


def update_unit_custom_id(unit_id, custom_id):
    unit = get_unit(unit_id)
    unit.custom_id = (custom_id or '').strip() or None
    db.session.commit()
    return unit


def update_unit_sales_data(unit_id, is_packed=None, is_sold=None, marketplace=None, customer=None):
    unit = get_unit(unit_id)
    if is_packed is not None:
        unit.is_packed = bool(is_packed)
    if is_sold is not None:
        unit.is_sold = bool(is_sold)
    if marketplace is not None:
        unit.marketplace = marketplace.strip() or None
    if customer is not None:
        unit.customer = customer.strip() or None
    db.session.commit()
    return unit


def toggle_unit_ingredient(unit_id, ingredient_id, is_completed, user=None):
    """
    Mark or un-mark one ingredient of a unit and move the matching stock.

    Returns the unit. Sending the state the unit is already in changes nothing.
    """
    unit = get_unit(unit_id)
    ingredient = db.session.get(RecipeIngredient, ingredient_id)
    if ingredient is None or ingredient.recipe_id != unit.plan.recipe_id:
        raise NotFound('Ingredient not found in this recipe')

    completed = unit.completed_ids
    if (ingredient.id in completed) == bool(is_completed):
        return unit

    product = db.session.get(Product, ingredient.product_id)
    label = f'Production {unit.plan.recipe.name} #{unit.unit_number}'
    try:
        if is_completed:
            if product.stock < ingredient.quantity:
                raise ValidationFailed(f'Insufficient stock for {product.name}. '
                                       f'Available: {product.stock}, Requested: {ingredient.quantity}')
            product.stock -= ingredient.quantity
            completed.append(ingredient.id)
            movement = 'OUT'
        else:
            product.stock += ingredient.quantity
            completed.remove(ingredient.id)
            movement = 'IN'

        unit.completed_ids = completed
        db.session.add(Transaction(type=movement, quantity=ingredient.quantity, product_id=product.id,
                                   user_id=user.id if user else None,
                                   description=label if movement == 'OUT' else f'{label} (returned)'))
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return unit


def _blocking_reason(unit):
    if unit.completed_ids:
        return 'Progress detected'
    if unit.is_sold:
        return 'Marked as Sold'
    if unit.is_packed:
        return 'Marked as Packed'
    if unit.product_identifier:
        return f'Serial set ({unit.product_identifier})'
    if unit.custom_id:
        return f'ID set ({unit.custom_id})'
    return 'Unknown'


def update_production_plan_quantity(plan_id, new_quantity):
    """
    Change the unit target of a plan.

    Growing appends empty units after the highest unit number. Shrinking only
    removes empty units, highest numbers first, and fails without touching
    anything when there are not enough of them.
    """
    new_quantity = int(new_quantity)
    if new_quantity < 1:
        return None
    plan = get_plan(plan_id)
    diff = new_quantity - plan.quantity
    if diff == 0:
        return plan

    units = sorted(plan.units, key=lambda u: u.unit_number)
    try:
        if diff > 0:
            last_number = units[-1].unit_number if units else 0
            for n in range(1, diff + 1):
                plan.units.append(ProductionUnit(unit_number=last_number + n, completed='[]'))
        else:
            to_remove = -diff
            empty = [u for u in units if u.is_empty]
            if len(empty) < to_remove:
                blocking = next((u for u in reversed(units) if not u.is_empty), None)
                number = blocking.unit_number if blocking else '?'
                reason = _blocking_reason(blocking) if blocking else 'Unknown'
                raise ValidationFailed(f'Cannot reduce target. Only {len(empty)} empty units found. '
                                       f'Blocking unit #{number}: {reason}')
            for unit in list(reversed(empty))[:to_remove]:
                plan.units.remove(unit)
        plan.quantity = new_quantity
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return plan


def export_production_plans(month=None, year=None):
    return export_production_plans_to_excel(list_plans(month, year))


def production_overview(year=None):
    year = year or date.today().year
    months = [{'month': m, 'target': 0, 'completed': 0} for m in range(1, 13)]
    for plan in ProductionPlan.query.filter_by(year=year).all():
        months[plan.month - 1]['target'] += plan.quantity
        months[plan.month - 1]['completed'] += plan.completed_units
    return {'year': year, 'months': months}

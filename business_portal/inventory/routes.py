import logging

from flask import request, jsonify, send_file
from flask_login import current_user

from . import bp
from .forms import (ProductForm, StockForm, ImportForm, RecipeForm, IngredientForm, ProductionPlanForm,
                    PlanQuantityForm, UnitSalesForm, RackForm, DrawerForm)
from business_portal.errors import ValidationFailed
from business_portal.services import inventory as inventory_service
from business_portal.services import checkout as checkout_service
from business_portal.services import catalogue
from business_portal.services import production
from business_portal.services import racks as rack_service
from business_portal.utils.helpers import (admin_required, login_required_json, roles_required, validate_or_raise,
                                           month_year_args, log_audit)

logger = logging.getLogger(__name__)

XLSX_MIMETYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
STOCK_ROLES = ('ADMIN', 'HRD', 'ADMINISTRASI', 'TEKNISI')


def _xlsx(output, filename):
    return send_file(output, mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)


def _submitted(field):
    """Field value, or None when the request did not carry the field at all."""
    return field.data if field.raw_data else None


# --- Products & stock ledger ---

@bp.route('/products')
@login_required_json
def products():
    return jsonify([p.to_dict() for p in inventory_service.list_products(request.args.get('q'))])


@bp.route('/products', methods=['POST'])
@roles_required(*STOCK_ROLES)
def create_product():
    form = validate_or_raise(ProductForm())
    product = inventory_service.create_product(
        form.name.data, form.sku.data,
        stock=form.stock.data or 0,
        low_stock_threshold=form.low_stock_threshold.data or 0,
        notes=form.notes.data,
        image=form.image.data or None,
        user=current_user,
    )
    log_audit('CREATE', 'Product', product.id, f'Created product {product.sku}', current_user)
    return jsonify(product.to_dict()), 201


@bp.route('/products/<int:product_id>', methods=['POST', 'PUT'])
@roles_required(*STOCK_ROLES)
def update_product(product_id):
    form = validate_or_raise(ProductForm())
    product = inventory_service.update_product(product_id, form.name.data, form.sku.data,
                                               low_stock_threshold=form.low_stock_threshold.data or 0,
                                               notes=form.notes.data, image=form.image.data or None)
    return jsonify(product.to_dict())


@bp.route('/products/<int:product_id>', methods=['DELETE'])
@admin_required
def delete_product(product_id):
    inventory_service.delete_product(product_id)
    log_audit('DELETE', 'Product', product_id, 'Product deleted', current_user)
    return jsonify({'success': True})


@bp.route('/products/<int:product_id>/stock', methods=['POST'])
@roles_required(*STOCK_ROLES)
def add_stock(product_id):
    form = validate_or_raise(StockForm())
    product = inventory_service.add_stock(product_id, form.quantity.data, user=current_user,
                                          description=form.description.data)
    return jsonify(product.to_dict())


@bp.route('/products/low-stock')
@login_required_json
def low_stock():
    return jsonify([p.to_dict() for p in inventory_service.low_stock_products()])


@bp.route('/products/export')
@login_required_json
def export_products():
    from business_portal.excel import export_products_to_excel
    return _xlsx(export_products_to_excel(inventory_service.list_products()), 'products.xlsx')


@bp.route('/products/import', methods=['POST'])
@admin_required
def import_products():
    form = validate_or_raise(ImportForm())
    result = inventory_service.import_products(form.file.data, user=current_user)
    log_audit('IMPORT', 'Product', None, f"Created {result['created']}, updated {result['updated']}", current_user)
    return jsonify(result)


@bp.route('/transactions')
@login_required_json
def transactions():
    history = inventory_service.transaction_history(limit=request.args.get('limit', 100, type=int),
                                                    product_id=request.args.get('product_id', type=int))
    return jsonify([t.to_dict() for t in history])


# --- POS ---

@bp.route('/checkout', methods=['POST'])
@login_required_json
def checkout():
    items = (request.get_json(silent=True) or {}).get('items')
    if not isinstance(items, list):
        raise ValidationFailed('items: expected a list')
    order = checkout_service.process_checkout(items, current_user)
    return jsonify({'success': True, 'orderNumber': order.order_number, 'order': order.to_dict()}), 201


@bp.route('/orders')
@login_required_json
def orders():
    history = checkout_service.order_history(limit=request.args.get('limit', 100, type=int))
    return jsonify([o.to_dict() for o in history])


@bp.route('/orders/<int:order_id>')
@login_required_json
def order(order_id):
    return jsonify(checkout_service.get_order(order_id).to_dict())


# --- Recipes ---

@bp.route('/recipes')
@login_required_json
def recipes():
    return jsonify([r.to_dict() for r in catalogue.list_recipes()])


@bp.route('/recipes', methods=['POST'])
@admin_required
def create_recipe():
    form = validate_or_raise(RecipeForm())
    recipe = catalogue.create_recipe(form.name.data, form.description.data)
    return jsonify(recipe.to_dict()), 201


@bp.route('/recipes/<int:recipe_id>', methods=['GET'])
@login_required_json
def recipe(recipe_id):
    return jsonify(catalogue.get_recipe(recipe_id).to_dict())


@bp.route('/recipes/<int:recipe_id>', methods=['POST', 'PUT'])
@admin_required
def update_recipe(recipe_id):
    form = validate_or_raise(RecipeForm())
    return jsonify(catalogue.update_recipe(recipe_id, form.name.data, form.description.data).to_dict())


@bp.route('/recipes/<int:recipe_id>', methods=['DELETE'])
@admin_required
def delete_recipe(recipe_id):
    catalogue.delete_recipe(recipe_id)
    log_audit('DELETE', 'Recipe', recipe_id, 'Recipe deleted', current_user)
    return jsonify({'success': True})


@bp.route('/recipes/<int:recipe_id>/ingredients', methods=['POST'])
@admin_required
def add_ingredient(recipe_id):
    form = validate_or_raise(IngredientForm())
    ingredient = catalogue.add_ingredient(recipe_id, form.product.data.id, form.quantity.data, form.notes.data)
    return jsonify(ingredient.to_dict()), 201


@bp.route('/ingredients/<int:ingredient_id>', methods=['DELETE'])
@admin_required
def remove_ingredient(ingredient_id):
    catalogue.remove_ingredient(ingredient_id)
    return jsonify({'success': True})


# --- Production plans ---

@bp.route('/production-plans')
@login_required_json
def production_plans():
    plans = production.list_plans(*month_year_args(default_today=False))
    return jsonify([p.to_dict() for p in plans])


@bp.route('/production-plans', methods=['POST'])
@admin_required
def create_production_plan():
    form = validate_or_raise(ProductionPlanForm())
    plan = production.create_production_plan(form.recipe.data.id, form.quantity.data, form.month.data, form.year.data)
    log_audit('CREATE', 'ProductionPlan', plan.id, f'{plan.quantity} units for {plan.month}/{plan.year}', current_user)
    return jsonify(plan.to_dict(with_units=True)), 201


@bp.route('/production-plans/overview')
@login_required_json
def production_overview():
    return jsonify(production.production_overview(month_year_args(default_today=False)[1]))


@bp.route('/production-plans/export')
@login_required_json
def export_production_plans():
    month, year = month_year_args(default_today=False)
    return _xlsx(production.export_production_plans(month, year), 'production_plans.xlsx')


@bp.route('/production-plans/<int:plan_id>')
@login_required_json
def production_plan(plan_id):
    plan = production.get_plan(plan_id)
    data = plan.to_dict(with_units=True)
    data['ingredients'] = [i.to_dict() for i in plan.recipe.ingredients]
    return jsonify(data)


@bp.route('/production-plans/<int:plan_id>', methods=['DELETE'])
@admin_required
def delete_production_plan(plan_id):
    production.delete_production_plan(plan_id)
    log_audit('DELETE', 'ProductionPlan', plan_id, 'Production plan deleted', current_user)
    return jsonify({'success': True})


@bp.route('/production-plans/<int:plan_id>/quantity', methods=['POST'])
@admin_required
def update_plan_quantity(plan_id):
    form = validate_or_raise(PlanQuantityForm())
    plan = production.update_production_plan_quantity(plan_id, form.quantity.data)
    if plan is None:
        plan = production.get_plan(plan_id)
    return jsonify(plan.to_dict(with_units=True))


@bp.route('/units/<int:unit_id>/ingredients/<int:ingredient_id>', methods=['POST'])
@roles_required(*STOCK_ROLES)
def toggle_unit_ingredient(unit_id, ingredient_id):
    data = request.get_json(silent=True) or request.form
    completed = str(data.get('completed', '')).lower() in ('1', 'true', 'on', 'yes')
    unit = production.toggle_unit_ingredient(unit_id, ingredient_id, completed, user=current_user)
    return jsonify(unit.to_dict())


@bp.route('/units/<int:unit_id>/identifier', methods=['POST'])
@roles_required(*STOCK_ROLES)
def update_unit_identifier(unit_id):
    data = request.get_json(silent=True) or request.form
    return jsonify(production.update_unit_identifier(unit_id, data.get('identifier')).to_dict())


@bp.route('/units/<int:unit_id>/custom-id', methods=['POST'])
@roles_required(*STOCK_ROLES)
def update_unit_custom_id(unit_id):
    data = request.get_json(silent=True) or request.form
    return jsonify(production.update_unit_custom_id(unit_id, data.get('custom_id')).to_dict())


@bp.route('/units/<int:unit_id>/sales', methods=['POST'])
@roles_required(*STOCK_ROLES)
def update_unit_sales(unit_id):
    form = validate_or_raise(UnitSalesForm())
    unit = production.update_unit_sales_data(unit_id, is_packed=form.is_packed.data, is_sold=form.is_sold.data,
                                             marketplace=form.marketplace.data or '',
                                             customer=form.customer.data or '')
    return jsonify(unit.to_dict())


# --- Racks ---

@bp.route('/racks')
@login_required_json
def racks():
    return jsonify(rack_service.racks_with_details())


@bp.route('/racks', methods=['POST'])
@admin_required
def create_rack():
    form = validate_or_raise(RackForm())
    rack = rack_service.create_rack(form.name.data, form.drawer_count.data, form.rows.data, form.cols.data,
                                    form.description.data)
    return jsonify(rack.to_dict()), 201


@bp.route('/racks/<int:rack_id>', methods=['POST', 'PUT'])
@admin_required
def update_rack(rack_id):
    form = validate_or_raise(RackForm())
    rack = rack_service.update_rack(rack_id, form.name.data, form.drawer_count.data, form.rows.data,
                                    form.cols.data, form.description.data)
    return jsonify(rack.to_dict())


@bp.route('/racks/<int:rack_id>', methods=['DELETE'])
@admin_required
def delete_rack(rack_id):
    rack_service.delete_rack(rack_id)
    return jsonify({'success': True})


@bp.route('/racks/<int:rack_id>/drawer', methods=['POST'])
@admin_required
def update_drawer(rack_id):
    form = validate_or_raise(DrawerForm())
    rack = rack_service.update_drawer(rack_id, form.code.data, note=_submitted(form.note),
                                      color=_submitted(form.color))
    return jsonify(rack.to_dict())


@bp.route('/racks/<int:rack_id>/unused')
@admin_required
def unused_drawers(rack_id):
    return jsonify(rack_service.unused_drawers(rack_id))


@bp.route('/racks/export')
@admin_required
def export_racks():
    return _xlsx(rack_service.export_racks(), 'racks.xlsx')


@bp.route('/racks/import', methods=['POST'])
@admin_required
def import_racks():
    form = validate_or_raise(ImportForm())
    return jsonify(rack_service.import_racks_file(form.file.data))

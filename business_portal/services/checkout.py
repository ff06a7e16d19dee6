import logging
from datetime import datetime, time, timedelta

from business_portal import db
from business_portal.models import Product, Transaction, Order, OrderItem
from business_portal.errors import ValidationFailed, NotFound

logger = logging.getLogger(__name__)


def generate_order_number(now=None):
    """
    ORD-YYYYMMDD-NNN where NNN is the number of orders created today plus one.

    "Today" is the UTC day, the clock ``Order.created_at`` is stored in.
    """
    today = (now or datetime.utcnow()).date()
    start = datetime.combine(today, time.min)
    count = Order.query.filter(Order.created_at >= start, Order.created_at < start + timedelta(days=1)).count()
    return f"ORD-{today.strftime('%Y%m%d')}-{count + 1:03d}"


def _merge_items(items):
    quantities = {}
    for item in items:
        try:
            product_id, quantity = int(item['productId']), int(item['quantity'])
        except (KeyError, TypeError, ValueError):
            raise ValidationFailed('Invalid checkout item')
        if quantity < 1:
            raise ValidationFailed('Quantity must be at least 1')
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def process_checkout(items, user=None):
    if not items:
        raise ValidationFailed('No items to checkout')
    quantities = _merge_items(items)

    products = {p.id: p for p in Product.query.filter(Product.id.in_(quantities)).all()}
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if product is None:
            raise NotFound(f'Product not found: {product_id}')
        if product.stock < quantity:
            raise ValidationFailed(f'Insufficient stock for {product.name}. '
                                   f'Available: {product.stock}, Requested: {quantity}')

    try:
        order = Order(order_number=generate_order_number(), user_id=user.id if user else None)
        db.session.add(order)
        for product_id, quantity in quantities.items():
            product = products[product_id]
            order.items.append(OrderItem(product_id=product.id, product_name=product.name,
                                         product_sku=product.sku, product_note=product.notes,
                                         quantity=quantity))
            product.stock -= quantity
            db.session.add(Transaction(type='OUT', quantity=quantity, product_id=product.id,
                                       user_id=user.id if user else None,
                                       description=f'Checkout via POS - {order.order_number}'))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Checkout failed')
        raise
    logger.info('Order %s created with %s item(s)', order.order_number, len(quantities))
    return order


def order_history(limit=100):
    return Order.query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


def get_order(order_id):
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound('Order not found')
    return order

import logging

from business_portal import db
from business_portal.models import Product, Transaction, RecipeIngredient
from business_portal.errors import ValidationFailed, NotFound
from business_portal.excel import read_products
from business_portal.services.uploads import save_image, delete_upload

logger = logging.getLogger(__name__)

PRODUCT_IMAGE_DIR = 'products'


def get_product(product_id):
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFound('Product not found')
    return product


def list_products(search=None):
    query = Product.query
    if search:
        pattern = f'%{search}%'
        query = query.filter(Product.name.ilike(pattern) | Product.sku.ilike(pattern))
    return query.order_by(Product.name).all()


def create_product(name, sku, stock=0, low_stock_threshold=0, notes=None, image=None, user=None):
    name, sku = (name or '').strip(), (sku or '').strip()
    if not name or not sku:
        raise ValidationFailed('Name and SKU are required')
    if stock < 0 or low_stock_threshold < 0:
        raise ValidationFailed('Stock values cannot be negative')
    if Product.query.filter_by(sku=sku).first():
        raise ValidationFailed(f'SKU {sku} already exists')

    image_path = save_image(image, PRODUCT_IMAGE_DIR) if image is not None and image.filename else None
    product = Product(name=name, sku=sku, stock=stock, low_stock_threshold=low_stock_threshold,
                      notes=notes or None, image=image_path)
    db.session.add(product)
    if stock:
        db.session.add(Transaction(type='IN', quantity=stock, product=product,
                                   user_id=user.id if user else None, description='Initial stock'))
    db.session.commit()
    return product


def update_product(product_id, name, sku, low_stock_threshold=0, notes=None, image=None):
    product = get_product(product_id)
    name, sku = (name or '').strip(), (sku or '').strip()
    if not name or not sku:
        raise ValidationFailed('Name and SKU are required')
    if Product.query.filter(Product.sku == sku, Product.id != product.id).first():
        raise ValidationFailed(f'SKU {sku} already exists')

    old_image = None
    if image is not None and image.filename:
        old_image, product.image = product.image, save_image(image, PRODUCT_IMAGE_DIR)
    product.name, product.sku = name, sku
    product.low_stock_threshold = low_stock_threshold
    product.notes = notes or None
    db.session.commit()
    if old_image:
        delete_upload(old_image)
    return product


def add_stock(product_id, quantity, user=None, description=None):
    if quantity is None or int(quantity) < 1:
        raise ValidationFailed('Quantity must be at least 1')
    product = get_product(product_id)
    product.stock += int(quantity)
    db.session.add(Transaction(type='IN', quantity=int(quantity), product_id=product.id,
                               user_id=user.id if user else None, description=description or 'Restock'))
    db.session.commit()
    return product


def delete_product(product_id):
    product = get_product(product_id)
    recipes = sorted({i.recipe.name for i in RecipeIngredient.query.filter_by(product_id=product.id).all()})
    if recipes:
        raise ValidationFailed(f'Product is used in recipe(s): {", ".join(recipes)}. Remove it from them first')
    image = product.image
    db.session.delete(product)
    db.session.commit()
    if image:
        delete_upload(image)


def low_stock_products():
    return (Product.query
            .filter(Product.stock <= Product.low_stock_threshold)
            .order_by(Product.stock)
            .all())


def transaction_history(limit=100, product_id=None):
    query = Transaction.query
    if product_id:
        query = query.filter_by(product_id=product_id)
    return query.order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(limit).all()


def import_products(file, user=None):
    """Upsert products by SKU. Stock differences are written to the ledger."""
    rows = read_products(file)
    created = updated = 0
    try:
        for row in rows:
            product = Product.query.filter_by(sku=row['sku']).first()
            if product is None:
                if not row['name']:
                    raise ValidationFailed(f"Name is required for new SKU {row['sku']}")
                product = Product(name=row['name'], sku=row['sku'], stock=0,
                                  low_stock_threshold=row['low_stock_threshold'] or 0)
                db.session.add(product)
                created += 1
            else:
                updated += 1
                if row['name']:
                    product.name = row['name']
                if row['low_stock_threshold'] is not None:
                    product.low_stock_threshold = row['low_stock_threshold']
            if row['notes'] is not None:
                product.notes = row['notes']

            if row['stock'] is not None and row['stock'] != product.stock:
                diff = row['stock'] - product.stock
                product.stock = row['stock']
                db.session.add(Transaction(type='IN' if diff > 0 else 'OUT', quantity=abs(diff), product=product,
                                           user_id=user.id if user else None, description='Spreadsheet import'))
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Product import failed')
        raise
    return {'success': True, 'created': created, 'updated': updated}

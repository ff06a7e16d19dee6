from business_portal import db
from business_portal.models import Recipe, RecipeIngredient, Product
from business_portal.errors import ValidationFailed, NotFound


def get_recipe(recipe_id):
    recipe = db.session.get(Recipe, recipe_id)
    if recipe is None:
        raise NotFound('Recipe not found')
    return recipe


def list_recipes():
    return Recipe.query.order_by(Recipe.name).all()


def create_recipe(name, description=None):
    if not (name or '').strip():
        raise ValidationFailed('Recipe name is required')
    recipe = Recipe(name=name.strip(), description=description or None)
    db.session.add(recipe)
    db.session.commit()
    return recipe


def update_recipe(recipe_id, name, description=None):
    recipe = get_recipe(recipe_id)
    if not (name or '').strip():
        raise ValidationFailed('Recipe name is required')
    recipe.name = name.strip()
    recipe.description = description or None
    db.session.commit()
    return recipe


def delete_recipe(recipe_id):
    recipe = get_recipe(recipe_id)
    db.session.delete(recipe)
    db.session.commit()


def add_ingredient(recipe_id, product_id, quantity=1, notes=None):
    recipe = get_recipe(recipe_id)
    if db.session.get(Product, product_id) is None:
        raise NotFound('Product not found')
    if int(quantity) < 1:
        raise ValidationFailed('Quantity must be at least 1')
    ingredient = RecipeIngredient(recipe_id=recipe.id, product_id=product_id,
                                  quantity=int(quantity), notes=notes or None)
    db.session.add(ingredient)
    db.session.commit()
    return ingredient


def remove_ingredient(ingredient_id):
    ingredient = db.session.get(RecipeIngredient, ingredient_id)
    if ingredient is None:
        raise NotFound('Ingredient not found')
    db.session.delete(ingredient)
    db.session.commit()

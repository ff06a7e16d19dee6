from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileAllowed, FileRequired
from wtforms import StringField, IntegerField, BooleanField, TextAreaField
from wtforms.validators import DataRequired, InputRequired, Optional, NumberRange, Length
from wtforms_sqlalchemy.fields import QuerySelectField

from business_portal.models import Product, Recipe


def get_products():
    return Product.query.order_by(Product.name).all()


def get_recipes():
    return Recipe.query.order_by(Recipe.name).all()


IMAGES = FileAllowed(['jpg', 'jpeg', 'png', 'webp', 'gif'], 'Images only!')


class ProductForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    sku = StringField('SKU', validators=[DataRequired(), Length(max=100)])
    stock = IntegerField('Stock', default=0, validators=[Optional(), NumberRange(min=0)])
    low_stock_threshold = IntegerField('Low stock threshold', default=0, validators=[Optional(), NumberRange(min=0)])
    notes = StringField('Notes', validators=[Optional(), Length(max=255)])
    image = FileField('Image', validators=[Optional(), IMAGES])


class StockForm(FlaskForm):
    quantity = IntegerField('Quantity', validators=[InputRequired(), NumberRange(min=1)])
    description = StringField('Description', validators=[Optional(), Length(max=255)])


class ImportForm(FlaskForm):
    file = FileField('Spreadsheet', validators=[FileRequired(), FileAllowed(['xlsx', 'xls'], 'Excel files only!')])


class RecipeForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional()])


class IngredientForm(FlaskForm):
    product = QuerySelectField('Product', query_factory=get_products, get_label='name', allow_blank=False,
                               validators=[DataRequired()])
    quantity = IntegerField('Quantity', default=1, validators=[InputRequired(), NumberRange(min=1)])
    notes = StringField('Notes', validators=[Optional(), Length(max=255)])


class ProductionPlanForm(FlaskForm):
    recipe = QuerySelectField('Recipe', query_factory=get_recipes, get_label='name', allow_blank=False,
                              validators=[DataRequired()])
    quantity = IntegerField('Target', validators=[InputRequired(), NumberRange(min=1)])
    month = IntegerField('Month', validators=[DataRequired(), NumberRange(min=1, max=12)])
    year = IntegerField('Year', validators=[DataRequired(), NumberRange(min=2000, max=2100)])


class PlanQuantityForm(FlaskForm):
    quantity = IntegerField('Target', validators=[InputRequired()])


class UnitSalesForm(FlaskForm):
    is_packed = BooleanField('Packed')
    is_sold = BooleanField('Sold')
    marketplace = StringField('Marketplace', validators=[Optional(), Length(max=100)])
    customer = StringField('Customer', validators=[Optional(), Length(max=200)])


class RackForm(FlaskForm):
    name = StringField('Name', validators=[DataRequired(), Length(max=50)])
    drawer_count = IntegerField('Drawers', validators=[Optional(), NumberRange(min=1)])
    rows = IntegerField('Rows', validators=[Optional(), NumberRange(min=1)])
    cols = IntegerField('Columns', validators=[Optional(), NumberRange(min=1)])
    description = StringField('Description', validators=[Optional(), Length(max=255)])


class DrawerForm(FlaskForm):
    code = StringField('Drawer', validators=[DataRequired()])
    note = StringField('Note', validators=[Optional(), Length(max=255)])
    color = StringField('Color', validators=[Optional(), Length(max=20)])

import json
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from . import db, login_manager
from .crypto import encrypt, decrypt, decrypt_date, decrypt_number, blind_hash

ADMIN_ROLES = ('ADMIN', 'HRD')
ROLES = ('ADMIN', 'HRD', 'ADMINISTRASI', 'TEKNISI', 'USER')


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)

    # Personal data is stored encrypted; *_hash columns allow lookups
    name_enc = db.Column(db.Text)
    email_enc = db.Column(db.Text)
    email_hash = db.Column(db.String(64), index=True, unique=True)
    username_enc = db.Column(db.Text)
    username_hash = db.Column(db.String(64), index=True, unique=True)
    department_enc = db.Column(db.Text)
    role_enc = db.Column(db.Text)
    pin_enc = db.Column(db.Text)

    password_hash = db.Column(db.String(256))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    attendances = db.relationship('Attendance', backref='user', lazy='dynamic', cascade="all, delete-orphan")
    payrolls = db.relationship('Payroll', backref='user', lazy='dynamic', cascade="all, delete-orphan")
    log_activities = db.relationship('LogActivity', backref='user', lazy='dynamic', cascade="all, delete-orphan")
    requests = db.relationship('OvertimeLeave', backref='user', lazy='dynamic', cascade="all, delete-orphan")

    @property
    def name(self):
        return decrypt(self.name_enc)

    @name.setter
    def name(self, value):
        self.name_enc = encrypt(value)

    @property
    def email(self):
        return decrypt(self.email_enc)

    @email.setter
    def email(self, value):
        self.email_enc = encrypt(value)
        self.email_hash = blind_hash(value)

    @property
    def username(self):
        return decrypt(self.username_enc)

    @username.setter
    def username(self, value):
        self.username_enc = encrypt(value)
        self.username_hash = blind_hash(value)

    @property
    def department(self):
        return decrypt(self.department_enc)

    @department.setter
    def department(self, value):
        self.department_enc = encrypt(value)

    @property
    def role(self):
        return decrypt(self.role_enc) or 'USER'

    @role.setter
    def role(self, value):
        self.role_enc = encrypt(value or 'USER')

    @property
    def pin(self):
        return decrypt(self.pin_enc)

    @pin.setter
    def pin(self, value):
        self.pin_enc = encrypt(value)

    @property
    def is_admin(self):
        return self.role in ADMIN_ROLES

    @property
    def display_name(self):
        return self.name or self.username or 'Unknown'

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash or not password:
            return False
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'username': self.username,
            'department': self.department,
            'role': self.role,
            'hasPin': bool(self.pin_enc),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<User {self.id}>'


@login_manager.user_loader
def load_user(id):
    return db.session.get(User, int(id))


class AuditLog(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(50), nullable=False)  # e.g., 'CREATE', 'UPDATE', 'DELETE'
    resource_type = db.Column(db.String(50), nullable=False)
    resource_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.Text, nullable=True)
    performed_by = db.Column(db.String(100), nullable=False)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'action': self.action,
            'resourceType': self.resource_type,
            'resourceId': self.resource_id,
            'details': self.details,
            'performedBy': self.performed_by,
            'timestamp': self.timestamp.isoformat(),
        }

    def __repr__(self):
        return f'<AuditLog {self.action} on {self.resource_type} by {self.performed_by}>'


class SystemSetting(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)
    value = db.Column(db.Text, nullable=False, default='')
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<SystemSetting {self.key}>'


# --- HR ---

class Attendance(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    clock_in_enc = db.Column(db.Text)
    clock_out_enc = db.Column(db.Text)
    status_enc = db.Column(db.Text)  # PRESENT, SICK, PERMIT, LEAVE, ABSENT
    notes_enc = db.Column(db.Text)
    is_holiday = db.Column(db.Boolean, default=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('user_id', 'date', name='_user_attendance_date_uc'),)

    @property
    def clock_in(self):
        return decrypt_date(self.clock_in_enc)

    @property
    def clock_out(self):
        return decrypt_date(self.clock_out_enc)

    @property
    def status(self):
        return decrypt(self.status_enc)

    @property
    def notes(self):
        return decrypt(self.notes_enc)

    def to_dict(self):
        clock_in, clock_out = self.clock_in, self.clock_out
        return {
            'id': self.id,
            'userId': self.user_id,
            'date': self.date.isoformat(),
            'clockIn': clock_in.isoformat() if clock_in else None,
            'clockOut': clock_out.isoformat() if clock_out else None,
            'status': self.status,
            'notes': self.notes,
            'isHoliday': bool(self.is_holiday),
        }

    def __repr__(self):
        return f'<Attendance {self.user_id} on {self.date}>'


class WorkSchedule(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    day_of_week = db.Column(db.Integer, unique=True, nullable=False)  # 0 = Sunday
    day_name = db.Column(db.String(20), nullable=False)
    start_time = db.Column(db.String(5))  # HH:MM
    end_time = db.Column(db.String(5))
    is_work_day = db.Column(db.Boolean, default=True)

    def to_dict(self):
        return {
            'dayOfWeek': self.day_of_week,
            'dayName': self.day_name,
            'startTime': self.start_time,
            'endTime': self.end_time,
            'isWorkDay': bool(self.is_work_day),
        }


class CustomWorkSchedule(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    start_time = db.Column(db.String(5))
    end_time = db.Column(db.String(5))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'startDate': self.start_date.isoformat(),
            'endDate': self.end_date.isoformat(),
            'startTime': self.start_time,
            'endTime': self.end_time,
        }


class SalaryComponent(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(20), nullable=False)  # ADDITION, DEDUCTION
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'type': self.type}


class Payroll(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)

    month_enc = db.Column(db.Text)
    year_enc = db.Column(db.Text)
    basic_salary_enc = db.Column(db.Text)
    net_salary_enc = db.Column(db.Text)
    salary_slip_enc = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    items = db.relationship('PayrollItem', backref='payroll', lazy='select', cascade="all, delete-orphan")

    __table_args__ = (db.UniqueConstraint('user_id', 'month', 'year', name='_user_payroll_period_uc'),)

    @property
    def basic_salary(self):
        return decrypt_number(self.basic_salary_enc)

    @property
    def net_salary(self):
        return decrypt_number(self.net_salary_enc)

    @property
    def salary_slip(self):
        return decrypt(self.salary_slip_enc)

    def totals(self):
        additions = deductions = 0.0
        for item in self.items:
            if item.component.type == 'ADDITION':
                additions += item.amount
            elif item.component.type == 'DEDUCTION':
                deductions += item.amount
        return additions, deductions

    def to_dict(self):
        additions, deductions = self.totals()
        return {
            'id': self.id,
            'userId': self.user_id,
            'month': self.month,
            'year': self.year,
            'basicSalary': self.basic_salary,
            'netSalary': self.net_salary,
            'salarySlip': self.salary_slip,
            'totalAdditions': additions,
            'totalDeductions': deductions,
            'items': [item.to_dict() for item in self.items],
        }

    def __repr__(self):
        return f'<Payroll {self.user_id} for {self.month}/{self.year}>'


class PayrollItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    payroll_id = db.Column(db.Integer, db.ForeignKey('payroll.id'), nullable=False)
    component_id = db.Column(db.Integer, db.ForeignKey('salary_component.id'), nullable=False)
    component = db.relationship('SalaryComponent')
    amount_enc = db.Column(db.Text)

    @property
    def amount(self):
        return decrypt_number(self.amount_enc)

    def to_dict(self):
        return {
            'id': self.id,
            'componentId': self.component_id,
            'componentName': self.component.name if self.component else None,
            'type': self.component.type if self.component else None,
            'amount': self.amount,
        }


class OvertimeLeave(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)

    # Every field except the owner is encrypted, filtering happens in memory
    date_enc = db.Column(db.Text)
    type_enc = db.Column(db.Text)  # LEAVE, VACATION, OVERTIME, OVERTIME_SUBMISSION
    reason_enc = db.Column(db.Text)
    attachment_enc = db.Column(db.Text)
    amount_enc = db.Column(db.Text)
    status_enc = db.Column(db.Text)  # PENDING, APPROVED, REJECTED
    admin_note_enc = db.Column(db.Text)
    requester_name_enc = db.Column(db.Text)  # set on overtime orders issued by an admin
    job_enc = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def date(self):
        value = decrypt_date(self.date_enc)
        return value.date() if value else None

    @property
    def type(self):
        return decrypt(self.type_enc)

    @property
    def status(self):
        return decrypt(self.status_enc)

    def to_dict(self):
        amount = decrypt(self.amount_enc)
        return {
            'id': self.id,
            'userId': self.user_id,
            'userName': self.user.display_name if self.user else None,
            'requesterName': decrypt(self.requester_name_enc),
            'job': decrypt(self.job_enc),
            'date': self.date.isoformat() if self.date else None,
            'type': self.type,
            'reason': decrypt(self.reason_enc),
            'attachment': decrypt(self.attachment_enc),
            'amount': float(amount) if amount else None,
            'status': self.status,
            'adminNote': decrypt(self.admin_note_enc),
            'createdAt': self.created_at.isoformat(),
        }


class LogActivity(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    date = db.Column(db.Date, nullable=False)
    activity = db.Column(db.Text, nullable=False)
    problem = db.Column(db.Text)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('user_id', 'date', name='_user_log_date_uc'),)

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'userName': self.user.display_name if self.user else None,
            'date': self.date.isoformat(),
            'activity': self.activity,
            'problem': self.problem,
        }


# --- Inventory & production ---

class Product(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    sku = db.Column(db.String(100), unique=True, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=0)
    image = db.Column(db.String(255))
    notes = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    transactions = db.relationship('Transaction', backref='product', lazy='dynamic', cascade="all, delete-orphan")

    @property
    def is_low_stock(self):
        return self.stock <= self.low_stock_threshold

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'sku': self.sku,
            'stock': self.stock,
            'lowStockThreshold': self.low_stock_threshold,
            'isLowStock': self.is_low_stock,
            'image': self.image,
            'notes': self.notes,
        }

    def __repr__(self):
        return f'<Product {self.sku}>'


class Transaction(db.Model):
    __tablename__ = 'stock_transaction'

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(3), nullable=False)  # IN, OUT
    quantity = db.Column(db.Integer, nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    description = db.Column(db.String(255))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'quantity': self.quantity,
            'productId': self.product_id,
            'productName': self.product.name if self.product else None,
            'userId': self.user_id,
            'description': self.description,
            'createdAt': self.created_at.isoformat(),
        }


class Order(db.Model):
    __tablename__ = 'sales_order'

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(30), unique=True, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=True)
    user = db.relationship('User')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship('OrderItem', backref='order', lazy='select', cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'orderNumber': self.order_number,
            'userName': self.user.display_name if self.user else None,
            'createdAt': self.created_at.isoformat(),
            'items': [item.to_dict() for item in self.items],
        }


class OrderItem(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey('sales_order.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id', ondelete='SET NULL'), nullable=True)

    # Snapshot of the product at checkout time
    product_name = db.Column(db.String(200), nullable=False)
    product_sku = db.Column(db.String(100))
    product_note = db.Column(db.String(255))
    quantity = db.Column(db.Integer, nullable=False)

    def to_dict(self):
        return {
            'productId': self.product_id,
            'productName': self.product_name,
            'productSku': self.product_sku,
            'productNote': self.product_note,
            'quantity': self.quantity,
        }


class Recipe(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    ingredients = db.relationship('RecipeIngredient', backref='recipe', lazy='select', cascade="all, delete-orphan")
    plans = db.relationship('ProductionPlan', backref='recipe', lazy='dynamic', cascade="all, delete-orphan")

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'ingredients': [i.to_dict() for i in self.ingredients],
        }

    def __repr__(self):
        return f'<Recipe {self.name}>'


class RecipeIngredient(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id'), nullable=False)
    product = db.relationship('Product')
    quantity = db.Column(db.Integer, nullable=False, default=1)
    notes = db.Column(db.String(255))

    def to_dict(self):
        return {
            'id': self.id,
            'productId': self.product_id,
            'productName': self.product.name if self.product else None,
            'sku': self.product.sku if self.product else None,
            'quantity': self.quantity,
            'notes': self.notes,
        }


class ProductionPlan(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipe.id'), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    units = db.relationship('ProductionUnit', backref='plan', lazy='select',
                            order_by='ProductionUnit.unit_number', cascade="all, delete-orphan")

    __table_args__ = (db.UniqueConstraint('recipe_id', 'month', 'year', name='_recipe_plan_period_uc'),)

    @property
    def completed_units(self):
        total = len(self.recipe.ingredients)
        return sum(1 for unit in self.units if total and len(unit.completed_ids) >= total)

    def to_dict(self, with_units=False):
        data = {
            'id': self.id,
            'recipeId': self.recipe_id,
            'recipeName': self.recipe.name if self.recipe else None,
            'quantity': self.quantity,
            'month': self.month,
            'year': self.year,
            'completedUnits': self.completed_units,
        }
        if with_units:
            data['units'] = [unit.to_dict() for unit in self.units]
        return data


class ProductionUnit(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    plan_id = db.Column(db.Integer, db.ForeignKey('production_plan.id'), nullable=False)
    unit_number = db.Column(db.Integer, nullable=False)
    completed = db.Column(db.Text, nullable=False, default='[]')  # JSON list of ingredient ids
    product_identifier = db.Column(db.String(100))
    custom_id = db.Column(db.String(100))
    is_packed = db.Column(db.Boolean, default=False)
    is_sold = db.Column(db.Boolean, default=False)
    marketplace = db.Column(db.String(100))
    customer = db.Column(db.String(200))

    @property
    def completed_ids(self):
        return json.loads(self.completed or '[]')

    @completed_ids.setter
    def completed_ids(self, ids):
        self.completed = json.dumps(ids)

    @property
    def is_empty(self):
        return (not self.completed_ids and not self.is_sold and not self.is_packed
                and not self.product_identifier and not self.custom_id)

    def to_dict(self):
        return {
            'id': self.id,
            'unitNumber': self.unit_number,
            'completed': self.completed_ids,
            'productIdentifier': self.product_identifier,
            'customId': self.custom_id,
            'isPacked': bool(self.is_packed),
            'isSold': bool(self.is_sold),
            'marketplace': self.marketplace,
            'customer': self.customer,
        }


class Rack(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)
    drawer_count = db.Column(db.Integer, nullable=False, default=0)
    rows = db.Column(db.Integer)
    cols = db.Column(db.Integer)
    description = db.Column(db.String(255))
    drawer_notes = db.Column(db.Text, default='{}')
    drawer_colors = db.Column(db.Text, default='{}')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def notes_map(self):
        return json.loads(self.drawer_notes or '{}')

    @property
    def colors_map(self):
        return json.loads(self.drawer_colors or '{}')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'drawerCount': self.drawer_count,
            'rows': self.rows,
            'cols': self.cols,
            'description': self.description,
            'drawerNotes': self.notes_map,
            'drawerColors': self.colors_map,
        }

    def __repr__(self):
        return f'<Rack {self.name}>'


# --- Messaging ---

class ChatRoom(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100))
    is_group = db.Column(db.Boolean, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    participants = db.relationship('ChatParticipant', backref='room', lazy='select', cascade="all, delete-orphan")
    messages = db.relationship('ChatMessage', backref='room', lazy='dynamic', cascade="all, delete-orphan")


class ChatParticipant(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('chat_room.id'), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    user = db.relationship('User')
    last_seen_at = db.Column(db.DateTime)
    joined_at = db.Column(db.DateTime, default=datetime.utcnow)

    __table_args__ = (db.UniqueConstraint('room_id', 'user_id', name='_room_participant_uc'),)


class ChatMessage(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('chat_room.id'), nullable=False)
    sender_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False)
    sender = db.relationship('User')
    content = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, index=True, default=datetime.utcnow)

    def __repr__(self):
        return f'<ChatMessage {self.id} in {self.room_id}>'

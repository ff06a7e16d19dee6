import logging

from business_portal import db
from business_portal.models import User, SalaryComponent, Payroll, PayrollItem
from business_portal.crypto import encrypt, encrypt_number
from business_portal.errors import ValidationFailed, NotFound
from business_portal.services.uploads import save_upload, delete_upload

logger = logging.getLogger(__name__)

COMPONENT_TYPES = ('ADDITION', 'DEDUCTION')
SLIP_DIR = 'salary-slips'


# --- Salary components ---

def get_salary_components(type=None):
    query = SalaryComponent.query
    if type:
        query = query.filter_by(type=type)
    return query.order_by(SalaryComponent.name).all()


def create_salary_component(name, type):
    name = (name or '').strip()
    if not name:
        raise ValidationFailed('Component name is required')
    if type not in COMPONENT_TYPES:
        raise ValidationFailed('Type must be ADDITION or DEDUCTION')
    if SalaryComponent.query.filter_by(name=name, type=type).first():
        raise ValidationFailed('Component already exists')

    component = SalaryComponent(name=name, type=type)
    db.session.add(component)
    db.session.commit()
    return component


def delete_salary_component(component_id):
    component = db.session.get(SalaryComponent, component_id)
    if component is None:
        raise NotFound('Component not found')
    if PayrollItem.query.filter_by(component_id=component_id).first():
        raise ValidationFailed('Component is used by existing payroll data')
    db.session.delete(component)
    db.session.commit()


# --- Payroll ---

def calculate_net_salary(basic_salary, items, components):
    """Net = basic + additions - deductions. Items with unknown components are ignored."""
    net = float(basic_salary)
    for item in items:
        component = components.get(item['componentId'])
        if component is None:
            continue
        if component.type == 'ADDITION':
            net += float(item['amount'])
        elif component.type == 'DEDUCTION':
            net -= float(item['amount'])
    return net


def _clean_items(items):
    cleaned = []
    for item in items or []:
        try:
            cleaned.append({'componentId': int(item['componentId']), 'amount': float(item.get('amount') or 0)})
        except (KeyError, TypeError, ValueError):
            raise ValidationFailed('Invalid payroll item')
    return cleaned


def upsert_payroll(user_id, month, year, basic_salary, items, slip=None, remove_slip=False):
    if db.session.get(User, user_id) is None:
        raise NotFound('User not found')
    if not 1 <= int(month) <= 12:
        raise ValidationFailed('Invalid month')
    try:
        basic_salary = float(basic_salary)
    except (TypeError, ValueError):
        raise ValidationFailed('Invalid basic salary')

    items = _clean_items(items)
    components = {c.id: c for c in SalaryComponent.query.filter(
        SalaryComponent.id.in_([i['componentId'] for i in items])).all()}
    net_salary = calculate_net_salary(basic_salary, items, components)

    payroll = Payroll.query.filter_by(user_id=user_id, month=month, year=year).first()
    slip_path = payroll.salary_slip if payroll else None
    old_slip = None

    if remove_slip and slip_path:
        old_slip, slip_path = slip_path, None
    if slip is not None and slip.filename:
        old_slip = old_slip or slip_path
        slip_path = save_upload(slip, SLIP_DIR)

    try:
        if payroll is None:
            payroll = Payroll(user_id=user_id, month=month, year=year)
            db.session.add(payroll)
        payroll.month_enc = encrypt_number(month)
        payroll.year_enc = encrypt_number(year)
        payroll.basic_salary_enc = encrypt_number(basic_salary)
        payroll.net_salary_enc = encrypt_number(net_salary)
        payroll.salary_slip_enc = encrypt(slip_path)

        payroll.items = [
            PayrollItem(component_id=item['componentId'], amount_enc=encrypt_number(item['amount']))
            for item in items if item['componentId'] in components
        ]
        db.session.commit()
    except Exception:
        db.session.rollback()
        if slip_path and slip_path != old_slip and slip is not None:
            delete_upload(slip_path)
        logger.exception('Error upserting payroll for user %s', user_id)
        raise

    if old_slip and old_slip != slip_path:
        delete_upload(old_slip)
    return payroll


def get_payroll(user_id, month, year):
    return Payroll.query.filter_by(user_id=user_id, month=month, year=year).first()


def get_payroll_by_id(payroll_id):
    payroll = db.session.get(Payroll, payroll_id)
    if payroll is None:
        raise NotFound('Payroll not found')
    return payroll


def delete_payroll(payroll_id):
    payroll = get_payroll_by_id(payroll_id)
    slip = payroll.salary_slip
    db.session.delete(payroll)
    db.session.commit()
    if slip:
        delete_upload(slip)


def monthly_recap(month, year):
    payrolls = {p.user_id: p for p in Payroll.query.filter_by(month=month, year=year).all()}
    rows = []
    totals = {'basicSalary': 0.0, 'totalAdditions': 0.0, 'totalDeductions': 0.0, 'netSalary': 0.0}

    for user in User.query.order_by(User.id).all():
        payroll = payrolls.get(user.id)
        row = {
            'userId': user.id,
            'name': user.name,
            'department': user.department,
            'hasPayroll': payroll is not None,
            'payrollId': payroll.id if payroll else None,
            'basicSalary': 0.0,
            'totalAdditions': 0.0,
            'totalDeductions': 0.0,
            'netSalary': 0.0,
        }
        if payroll:
            additions, deductions = payroll.totals()
            row.update(basicSalary=payroll.basic_salary, totalAdditions=additions,
                       totalDeductions=deductions, netSalary=payroll.net_salary)
            for key in totals:
                totals[key] += row[key]
        rows.append(row)
    return {'month': month, 'year': year, 'rows': rows, 'totals': totals}

import io
import re
import calendar
from datetime import date, datetime, time, timedelta

import pandas as pd
from openpyxl.utils import get_column_letter

from business_portal.errors import ValidationFailed

EXCEL_EPOCH = date(1899, 12, 30)
CLOCK_IN_CUTOFF = 12 * 60
MINUTES_PER_DAY = 24 * 60

GRID_STATUS_WORDS = {
    'SAKIT': 'SICK',
    'IZIN': 'PERMIT',
    'CUTI': 'LEAVE',
    'ALPA': 'ABSENT',
    'ABSEN': 'ABSENT',
}
STATUS_GRID_WORDS = {'SICK': 'SAKIT', 'PERMIT': 'IZIN', 'LEAVE': 'CUTI', 'ABSENT': 'ALPA'}
HOLIDAY_WORD = 'LIBUR'

TIME_RANGE_RE = re.compile(r'^(\d{1,2})[:.](\d{2})\s*[-–]\s*(\d{1,2})[:.](\d{2})$')
SINGLE_TIME_RE = re.compile(r'^(\d{1,2})[:.](\d{2})$')


def _write_book(sheets, widths=None):
    output = io.BytesIO()
    with pd.ExcelWriter(output, engine='openpyxl') as writer:
        for sheet_name, df in sheets:
            df.to_excel(writer, index=False, sheet_name=sheet_name)
            worksheet = writer.sheets[sheet_name]
            for idx, width in enumerate((widths or {}).get(sheet_name, []), start=1):
                worksheet.column_dimensions[get_column_letter(idx)].width = width
    output.seek(0)
    return output


def _read_rows(file):
    """All rows of the first sheet as lists, blanks as None."""
    try:
        df = pd.read_excel(file, header=None, dtype=object)
    except Exception as e:
        raise ValidationFailed(f'Could not read spreadsheet: {e}')
    df = df.astype(object).where(pd.notna(df), None)
    return df.values.tolist()


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _header_index(header):
    return {str(h).strip().lower(): idx for idx, h in enumerate(header) if not _is_blank(h)}


def parse_excel_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return EXCEL_EPOCH + timedelta(days=int(value))
        except (OverflowError, ValueError):
            return None
    try:
        return pd.to_datetime(str(value).strip()).date()
    except (ValueError, TypeError):
        return None


def parse_excel_minutes(value):
    """
    Minutes since midnight from a day fraction, a time object or an ``HH:MM``
    string. None when the value is not a time of day (e.g. ``25:00``).
    """
    if isinstance(value, (datetime, time)):
        return value.hour * 60 + value.minute
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        minutes = round((value % 1) * MINUTES_PER_DAY)
    else:
        parts = str(value).strip().split(':')
        if len(parts) < 2:
            return None
        try:
            hours, mins = int(parts[0]), int(parts[1])
        except ValueError:
            return None
        if not 0 <= mins < 60:
            return None
        minutes = hours * 60 + mins
    if not 0 <= minutes < MINUTES_PER_DAY:
        return None
    return minutes


# --- Raw attendance (one row per clock event) ---

def generate_attendance_template(users):
    rows = [
        {'ID': 'kode_id_user', 'Nama': 'nama user', 'Date': '2026-02-01', 'Time': '08:05'},
        {'ID': 'kode_id_user', 'Nama': 'nama user', 'Date': '2026-02-01', 'Time': '17:15'},
    ]
    for user in users:
        rows.append({'ID': user.id, 'Nama': user.name or '-', 'Date': '', 'Time': ''})
    df = pd.DataFrame(rows, columns=['ID', 'Nama', 'Date', 'Time'])
    return _write_book([('Template Import Absensi', df)], {'Template Import Absensi': [15, 30, 15, 10]})


def read_raw_attendance(file):
    """
    Group clock events by user and day.

    Returns ``(aggregated, errors)``: ``{(user_id, date): (clock_in_minutes,
    clock_out_minutes)}`` plus one message per unreadable row. Within a day
    events before 12:00 are clock-ins (earliest wins) and the rest clock-outs
    (latest wins). Either side may be None.
    """
    rows = _read_rows(file)
    if len(rows) < 2:
        raise ValidationFailed('File empty or invalid')

    header = _header_index(rows[0])
    if not all(col in header for col in ('id', 'date', 'time')):
        raise ValidationFailed('Required columns (ID, Date, Time) not found')
    id_idx, date_idx, time_idx = header['id'], header['date'], header['time']

    aggregated, errors = {}, []
    for row_no, row in enumerate(rows[1:], start=2):
        raw_id, raw_date, raw_time = row[id_idx], row[date_idx], row[time_idx]
        if _is_blank(raw_id) or _is_blank(raw_date) or _is_blank(raw_time):
            continue
        try:
            user_id = int(float(str(raw_id).strip()))
        except ValueError:
            errors.append(f'{get_column_letter(id_idx + 1)}{row_no}: invalid user ID "{raw_id}"')
            continue
        day = parse_excel_date(raw_date)
        if day is None:
            errors.append(f'{get_column_letter(date_idx + 1)}{row_no}: invalid date "{raw_date}"')
            continue
        minutes = parse_excel_minutes(raw_time)
        if minutes is None:
            errors.append(f'{get_column_letter(time_idx + 1)}{row_no}: invalid time "{raw_time}"')
            continue

        clock_in, clock_out = aggregated.get((user_id, day), (None, None))
        if minutes < CLOCK_IN_CUTOFF:
            clock_in = minutes if clock_in is None else min(clock_in, minutes)
        else:
            clock_out = minutes if clock_out is None else max(clock_out, minutes)
        aggregated[(user_id, day)] = (clock_in, clock_out)
    return aggregated, errors


def export_raw_attendance_to_excel(records, month=None, year=None):
    rows = []
    for record in records:
        name = record.user.name or '-'
        day = record.date.isoformat()
        for clock in (record.clock_in, record.clock_out):
            if clock:
                rows.append({'ID': record.user_id, 'Nama': name, 'Date': day, 'Time': clock.strftime('%H:%M')})
    df = pd.DataFrame(rows, columns=['ID', 'Nama', 'Date', 'Time'])
    sheet_name = f'Attendance {month}-{year}' if month and year else 'All Attendance'
    return _write_book([(sheet_name, df)], {sheet_name: [15, 30, 15, 10]})


# --- Monthly attendance grid (one row per user, one column per day) ---

def grid_cell_text(record):
    if record is None:
        return ''
    if record.is_holiday:
        return HOLIDAY_WORD
    status = record.status
    if status in STATUS_GRID_WORDS:
        return STATUS_GRID_WORDS[status]
    clock_in, clock_out = record.clock_in, record.clock_out
    if clock_in and clock_out:
        return f"{clock_in.strftime('%H:%M')}-{clock_out.strftime('%H:%M')}"
    if clock_in:
        return clock_in.strftime('%H:%M')
    return ''


def export_attendance_grid_to_excel(users, records, month, year):
    days = calendar.monthrange(year, month)[1]
    by_key = {(r.user_id, r.date.day): r for r in records}
    rows = []
    for user in users:
        row = {'ID': user.id, 'Nama': user.name or '-'}
        for day in range(1, days + 1):
            row[day] = grid_cell_text(by_key.get((user.id, day)))
        rows.append(row)
    df = pd.DataFrame(rows, columns=['ID', 'Nama'] + list(range(1, days + 1)))
    sheet_name = f'Absensi {month}-{year}'
    return _write_book([(sheet_name, df)], {sheet_name: [10, 30] + [12] * days})


def parse_grid_cell(value):
    """
    Interpret one grid cell.

    Returns None for blanks, otherwise a dict with ``status``, ``is_holiday``
    and ``clock_in``/``clock_out`` as ``time`` objects (or None). Raises
    ValueError for unknown text.
    """
    if _is_blank(value):
        return None
    if isinstance(value, (time, datetime)):
        return {'status': 'PRESENT', 'is_holiday': False,
                'clock_in': time(value.hour, value.minute), 'clock_out': None}

    text = str(value).strip().upper()
    if text == HOLIDAY_WORD:
        return {'status': None, 'is_holiday': True, 'clock_in': None, 'clock_out': None}
    if text in GRID_STATUS_WORDS:
        return {'status': GRID_STATUS_WORDS[text], 'is_holiday': False, 'clock_in': None, 'clock_out': None}

    match = TIME_RANGE_RE.match(text)
    if match:
        h1, m1, h2, m2 = (int(g) for g in match.groups())
        return {'status': 'PRESENT', 'is_holiday': False, 'clock_in': time(h1, m1), 'clock_out': time(h2, m2)}
    match = SINGLE_TIME_RE.match(text)
    if match:
        return {'status': 'PRESENT', 'is_holiday': False,
                'clock_in': time(int(match.group(1)), int(match.group(2))), 'clock_out': None}
    raise ValueError(f'Unrecognised value "{value}"')


def read_attendance_grid(file, month, year):
    """Returns ``(entries, errors)``, entries being ``(user_id, date, parsed_cell)``."""
    rows = _read_rows(file)
    if len(rows) < 2:
        raise ValidationFailed('File empty or invalid')

    header = rows[0]
    index = _header_index(header)
    if 'id' not in index:
        raise ValidationFailed('Required column ID not found')
    id_idx = index['id']

    days_in_month = calendar.monthrange(year, month)[1]
    day_columns = []
    for col, value in enumerate(header):
        try:
            day = int(float(str(value).strip()))
        except (TypeError, ValueError):
            continue
        if col != id_idx and 1 <= day <= days_in_month:
            day_columns.append((col, day))

    entries, errors = [], []
    for row_no, row in enumerate(rows[1:], start=2):
        raw_id = row[id_idx]
        if _is_blank(raw_id):
            continue
        try:
            user_id = int(float(str(raw_id).strip()))
        except ValueError:
            errors.append(f'{get_column_letter(id_idx + 1)}{row_no}: invalid user ID "{raw_id}"')
            continue
        for col, day in day_columns:
            cell = f'{get_column_letter(col + 1)}{row_no}'
            try:
                parsed = parse_grid_cell(row[col])
            except ValueError as e:
                errors.append(f'{cell}: {e}')
                continue
            except (TypeError, OverflowError):
                errors.append(f'{cell}: invalid time "{row[col]}"')
                continue
            if parsed is not None:
                entries.append((user_id, date(year, month, day), parsed))
    return entries, errors


# --- Inventory ---

PRODUCT_COLUMNS = ['Name', 'SKU', 'Stock', 'Low Stock Threshold', 'Notes']


def export_products_to_excel(products):
    data = [{
        'Name': p.name,
        'SKU': p.sku,
        'Stock': p.stock,
        'Low Stock Threshold': p.low_stock_threshold,
        'Notes': p.notes or '',
    } for p in products]
    df = pd.DataFrame(data, columns=PRODUCT_COLUMNS)
    return _write_book([('Products', df)], {'Products': [35, 20, 10, 20, 40]})


def _int_cell(value, default=0):
    if _is_blank(value):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise ValidationFailed(f'Invalid number: {value}')


def read_products(file):
    rows = _read_rows(file)
    if len(rows) < 2:
        raise ValidationFailed('File empty or invalid')
    header = _header_index(rows[0])
    if 'name' not in header or 'sku' not in header:
        raise ValidationFailed('Required columns (Name, SKU) not found')

    products = []
    for row in rows[1:]:
        sku = row[header['sku']]
        if _is_blank(sku):
            continue
        products.append({
            'name': str(row[header['name']] or '').strip(),
            'sku': str(sku).strip(),
            'stock': _int_cell(row[header['stock']]) if 'stock' in header else None,
            'low_stock_threshold': _int_cell(row[header['low stock threshold']]) if 'low stock threshold' in header else None,
            'notes': str(row[header['notes']]).strip() if 'notes' in header and not _is_blank(row[header['notes']]) else None,
        })
    return products


def export_production_plans_to_excel(plans):
    plan_rows, unit_rows = [], []
    for plan in plans:
        total = len(plan.recipe.ingredients)
        done = plan.completed_units
        plan_rows.append({
            'Recipe': plan.recipe.name,
            'Period': f'{plan.month:02d}/{plan.year}',
            'Target': plan.quantity,
            'Completed': done,
            'Progress (%)': round(done * 100 / plan.quantity, 1) if plan.quantity else 0,
        })
        for unit in plan.units:
            unit_rows.append({
                'Recipe': plan.recipe.name,
                'Unit': unit.unit_number,
                'Ingredients': f'{len(unit.completed_ids)}/{total}',
                'Serial': unit.product_identifier or '',
                'Custom ID': unit.custom_id or '',
                'Packed': 'Yes' if unit.is_packed else 'No',
                'Sold': 'Yes' if unit.is_sold else 'No',
                'Marketplace': unit.marketplace or '',
                'Customer': unit.customer or '',
            })
    plans_df = pd.DataFrame(plan_rows, columns=['Recipe', 'Period', 'Target', 'Completed', 'Progress (%)'])
    units_df = pd.DataFrame(unit_rows, columns=['Recipe', 'Unit', 'Ingredients', 'Serial', 'Custom ID',
                                                'Packed', 'Sold', 'Marketplace', 'Customer'])
    return _write_book([('Plans', plans_df), ('Units', units_df)])


RACK_COLUMNS = ['Name', 'Drawer Count', 'Rows', 'Cols', 'Description']


def export_racks_to_excel(racks):
    data = [{
        'Name': r.name,
        'Drawer Count': r.drawer_count,
        'Rows': r.rows,
        'Cols': r.cols,
        'Description': r.description or '',
    } for r in racks]
    df = pd.DataFrame(data, columns=RACK_COLUMNS)
    return _write_book([('Racks', df)], {'Racks': [15, 15, 10, 10, 40]})


def read_racks(file):
    rows = _read_rows(file)
    if len(rows) < 2:
        raise ValidationFailed('File empty or invalid')
    header = _header_index(rows[0])
    if 'name' not in header or 'drawer count' not in header:
        raise ValidationFailed('Required columns (Name, Drawer Count) not found')

    racks = []
    for row in rows[1:]:
        name = row[header['name']]
        if _is_blank(name):
            continue
        racks.append({
            'name': str(name).strip(),
            'drawer_count': _int_cell(row[header['drawer count']]),
            'rows': _int_cell(row[header['rows']], None) if 'rows' in header else None,
            'cols': _int_cell(row[header['cols']], None) if 'cols' in header else None,
            'description': str(row[header['description']]).strip()
            if 'description' in header and not _is_blank(row[header['description']]) else None,
        })
    return racks

"""
Storage racks and drawer addressing.

Drawers are numbered 0..drawer_count-1. A rack without a grid layout labels
them ``<rack>-01``, ``<rack>-02`` ... A rack with ``rows`` x ``cols`` uses a
spreadsheet style label, row letters then a two digit column:
``<rack>-A01`` ... ``<rack>-A<cols>``, ``<rack>-B01`` ... Rows past Z continue
with AA, AB and so on.
"""
import json
import logging
import re

from business_portal import db
from business_portal.models import Rack, Product
from business_portal.errors import ValidationFailed, NotFound
from business_portal.excel import read_racks, export_racks_to_excel

logger = logging.getLogger(__name__)

GRID_CODE_RE = re.compile(r'^([A-Z]+)(\d+)$')


def row_letters(row):
    letters = ''
    row += 1
    while row:
        row, remainder = divmod(row - 1, 26)
        letters = chr(ord('A') + remainder) + letters
    return letters


def row_number(letters):
    number = 0
    for char in letters:
        number = number * 26 + (ord(char) - ord('A') + 1)
    return number - 1


def _has_grid(rows, cols):
    return bool(rows) and bool(cols)


def drawer_code(rack_name, index, rows=None, cols=None):
    if _has_grid(rows, cols):
        row, col = divmod(index, cols)
        return f'{rack_name}-{row_letters(row)}{col + 1:02d}'
    return f'{rack_name}-{index + 1:02d}'


def drawer_index(rack_name, code, rows=None, cols=None):
    """Inverse of :func:`drawer_code`, -1 when the code does not belong to this rack or layout."""
    prefix = f'{rack_name}-'
    if not code or not code.startswith(prefix):
        return -1
    suffix = code[len(prefix):]

    if _has_grid(rows, cols):
        match = GRID_CODE_RE.match(suffix)
        if not match:
            return -1
        row, col = row_number(match.group(1)), int(match.group(2)) - 1
        if not 0 <= col < cols or not 0 <= row < rows:
            return -1
        return row * cols + col

    if not suffix.isdigit():
        return -1
    index = int(suffix) - 1
    return index if index >= 0 else -1


def drawer_codes(rack):
    return [drawer_code(rack.name, i, rack.rows, rack.cols) for i in range(rack.drawer_count)]


def get_rack(rack_id):
    rack = db.session.get(Rack, rack_id)
    if rack is None:
        raise NotFound('Rack not found')
    return rack


def list_racks():
    return Rack.query.order_by(Rack.name).all()


def _validate(name, drawer_count, rows, cols):
    name = (name or '').strip()
    if not name:
        raise ValidationFailed('Rack name is required')
    if bool(rows) != bool(cols):
        raise ValidationFailed('Rows and columns must be set together')
    if _has_grid(rows, cols):
        if rows < 1 or cols < 1:
            raise ValidationFailed('Rows and columns must be positive')
        drawer_count = drawer_count or rows * cols
        if drawer_count > rows * cols:
            raise ValidationFailed('Drawer count exceeds rows x columns')
    if not drawer_count or drawer_count < 1:
        raise ValidationFailed('Drawer count must be at least 1')
    return name, drawer_count


def create_rack(name, drawer_count, rows=None, cols=None, description=None):
    name, drawer_count = _validate(name, drawer_count, rows, cols)
    if Rack.query.filter_by(name=name).first():
        raise ValidationFailed(f'Rack {name} already exists')
    rack = Rack(name=name, drawer_count=drawer_count, rows=rows or None, cols=cols or None,
                description=description or None, drawer_notes='{}', drawer_colors='{}')
    db.session.add(rack)
    db.session.commit()
    return rack


def _remap(mapping, old, new):
    """Move drawer keyed values from the old naming/layout to the new one, dropping lost drawers."""
    remapped = {}
    for code, value in mapping.items():
        index = drawer_index(old['name'], code, old['rows'], old['cols'])
        if 0 <= index < new['drawer_count']:
            remapped[drawer_code(new['name'], index, new['rows'], new['cols'])] = value
    return remapped


def update_rack(rack_id, name, drawer_count, rows=None, cols=None, description=None):
    rack = get_rack(rack_id)
    name, drawer_count = _validate(name, drawer_count, rows, cols)
    if Rack.query.filter(Rack.name == name, Rack.id != rack.id).first():
        raise ValidationFailed(f'Rack {name} already exists')

    old = {'name': rack.name, 'rows': rack.rows, 'cols': rack.cols}
    new = {'name': name, 'rows': rows or None, 'cols': cols or None, 'drawer_count': drawer_count}
    rack.drawer_notes = json.dumps(_remap(rack.notes_map, old, new))
    rack.drawer_colors = json.dumps(_remap(rack.colors_map, old, new))

    rack.name = name
    rack.drawer_count = drawer_count
    rack.rows, rack.cols = new['rows'], new['cols']
    rack.description = description or None
    db.session.commit()
    return rack


def update_drawer(rack_id, code, note=None, color=None):
    rack = get_rack(rack_id)
    index = drawer_index(rack.name, code, rack.rows, rack.cols)
    if not 0 <= index < rack.drawer_count:
        raise ValidationFailed(f'Drawer {code} does not belong to rack {rack.name}')

    notes, colors = rack.notes_map, rack.colors_map
    if note is not None:
        if note.strip():
            notes[code] = note.strip()
        else:
            notes.pop(code, None)
    if color is not None:
        if color.strip():
            colors[code] = color.strip()
        else:
            colors.pop(code, None)
    rack.drawer_notes, rack.drawer_colors = json.dumps(notes), json.dumps(colors)
    db.session.commit()
    return rack


def delete_rack(rack_id):
    rack = get_rack(rack_id)
    db.session.delete(rack)
    db.session.commit()


def _products_by_sku(prefix=None):
    query = Product.query
    if prefix:
        query = query.filter(Product.sku.startswith(prefix))
    return {p.sku: p for p in query.all()}


def unused_drawers(rack_id):
    rack = get_rack(rack_id)
    used = _products_by_sku(f'{rack.name}-')
    return [code for code in drawer_codes(rack) if code not in used]


def racks_with_details():
    products = _products_by_sku()
    results = []
    for rack in list_racks():
        notes, colors = rack.notes_map, rack.colors_map
        drawers = []
        for code in drawer_codes(rack):
            product = products.get(code)
            drawers.append({
                'code': code,
                'isUsed': product is not None,
                'details': {'name': product.name, 'sku': product.sku, 'stock': product.stock,
                            'image': product.image} if product else None,
                'note': notes.get(code),
                'color': colors.get(code),
            })
        data = rack.to_dict()
        data['drawers'] = drawers
        data['unusedDrawersCount'] = sum(1 for d in drawers if not d['isUsed'])
        results.append(data)
    return results


def export_racks():
    return export_racks_to_excel(list_racks())


def import_racks(rows):
    """Upsert racks by name from parsed rows (see excel.read_racks)."""
    created = updated = 0
    try:
        for row in rows:
            rack = Rack.query.filter_by(name=row['name']).first()
            if rack is None:
                name, count = _validate(row['name'], row['drawer_count'], row['rows'], row['cols'])
                db.session.add(Rack(name=name, drawer_count=count, rows=row['rows'], cols=row['cols'],
                                    description=row['description'], drawer_notes='{}', drawer_colors='{}'))
                created += 1
            else:
                _, count = _validate(row['name'], row['drawer_count'], row['rows'], row['cols'])
                old = {'name': rack.name, 'rows': rack.rows, 'cols': rack.cols}
                new = {'name': rack.name, 'rows': row['rows'], 'cols': row['cols'], 'drawer_count': count}
                rack.drawer_notes = json.dumps(_remap(rack.notes_map, old, new))
                rack.drawer_colors = json.dumps(_remap(rack.colors_map, old, new))
                rack.drawer_count, rack.rows, rack.cols = count, row['rows'], row['cols']
                if row['description'] is not None:
                    rack.description = row['description']
                updated += 1
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception('Rack import failed')
        raise
    return {'success': True, 'created': created, 'updated': updated}


def import_racks_file(file):
    return import_racks(read_racks(file))

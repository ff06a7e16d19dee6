import io

import pandas as pd
import pytest

from business_portal.errors import ValidationFailed
from business_portal.models import Rack
from business_portal.services import inventory, racks


def test_row_letters():
    assert [racks.row_letters(i) for i in (0, 1, 25, 26, 27, 701, 702)] == ['A', 'B', 'Z', 'AA', 'AB', 'ZZ', 'AAA']
    for row in (0, 25, 26, 701, 702):
        assert racks.row_number(racks.row_letters(row)) == row


def test_drawer_codes():
    assert racks.drawer_code('R1', 0) == 'R1-01'
    assert racks.drawer_code('R1', 11) == 'R1-12'
    assert racks.drawer_code('R2', 0, rows=3, cols=4) == 'R2-A01'
    assert racks.drawer_code('R2', 5, rows=3, cols=4) == 'R2-B02'
    assert racks.drawer_code('R2', 11, rows=3, cols=4) == 'R2-C04'


def test_drawer_index_inverts_codes():
    for index in range(12):
        assert racks.drawer_index('R2', racks.drawer_code('R2', index, 3, 4), 3, 4) == index
        assert racks.drawer_index('R1', racks.drawer_code('R1', index)) == index
    assert racks.drawer_index('R2', 'R2-A05', 3, 4) == -1
    assert racks.drawer_index('R2', 'R2-D01', 3, 4) == -1
    assert racks.drawer_index('R2', 'R3-A01', 3, 4) == -1
    assert racks.drawer_index('R1', 'R1-xx') == -1


def test_grid_validation(app):
    with pytest.raises(ValidationFailed, match='Drawer count exceeds rows x columns'):
        racks.create_rack('R1', 13, rows=3, cols=4)
    with pytest.raises(ValidationFailed, match='Rows and columns must be set together'):
        racks.create_rack('R1', 5, rows=3)
    assert racks.create_rack('R1', None, rows=3, cols=4).drawer_count == 12
    with pytest.raises(ValidationFailed, match='already exists'):
        racks.create_rack('R1', 4)


def test_drawer_usage_follows_product_skus(app):
    rack = racks.create_rack('R1', 4)
    inventory.create_product('Baut', 'R1-02', stock=3)
    inventory.create_product('Lain', 'X-01')

    assert racks.unused_drawers(rack.id) == ['R1-01', 'R1-03', 'R1-04']
    details = racks.racks_with_details()[0]
    assert details['unusedDrawersCount'] == 3
    used = next(d for d in details['drawers'] if d['code'] == 'R1-02')
    assert used['isUsed'] is True
    assert used['details']['stock'] == 3


def test_rename_and_relayout_keep_drawer_notes(app):
    rack = racks.create_rack('R1', 4)
    racks.update_drawer(rack.id, 'R1-02', note='Baut M3', color='#ff0000')
    racks.update_drawer(rack.id, 'R1-04', note='Hilang')

    racks.update_rack(rack.id, 'R9', 3, rows=2, cols=2)
    assert rack.notes_map == {'R9-A02': 'Baut M3'}
    assert rack.colors_map == {'R9-A02': '#ff0000'}

    racks.update_drawer(rack.id, 'R9-A02', note='', color='')
    assert rack.notes_map == {}
    with pytest.raises(ValidationFailed):
        racks.update_drawer(rack.id, 'R9-B02', note='x')


def test_export_import_racks(admin_client):
    racks.create_rack('R1', 4, description='Lemari kecil')
    exported = pd.read_excel(io.BytesIO(admin_client.get('/inventory/racks/export').data))
    assert exported.loc[0, 'Name'] == 'R1'

    upload = io.BytesIO()
    pd.DataFrame([['R1', 6, None, None, None], ['R2', 8, 2, 4, 'Grid']],
                 columns=['Name', 'Drawer Count', 'Rows', 'Cols', 'Description']).to_excel(upload, index=False)
    upload.seek(0)
    response = admin_client.post('/inventory/racks/import', data={'file': (upload, 'racks.xlsx')},
                                 content_type='multipart/form-data')
    assert response.get_json() == {'success': True, 'created': 1, 'updated': 1}

    by_name = {r['name']: r for r in admin_client.get('/inventory/racks').get_json()}
    assert by_name['R1']['drawerCount'] == 6
    assert by_name['R1']['description'] == 'Lemari kecil'
    assert by_name['R2']['drawers'][-1]['code'] == 'R2-B04'


def test_rack_endpoints(admin_client, employee_client):
    assert employee_client.post('/inventory/racks', data={'name': 'R1', 'drawer_count': '4'}).status_code == 403
    response = admin_client.post('/inventory/racks', data={'name': 'R1', 'rows': '2', 'cols': '3'})
    assert response.status_code == 201
    rack = response.get_json()
    assert rack['drawerCount'] == 6

    response = admin_client.post(f"/inventory/racks/{rack['id']}/drawer", data={'code': 'R1-B03', 'note': 'Kabel'})
    assert response.get_json()['drawerNotes'] == {'R1-B03': 'Kabel'}
    assert len(admin_client.get(f"/inventory/racks/{rack['id']}/unused").get_json()) == 6

    # Sending only a color keeps the note
    response = admin_client.post(f"/inventory/racks/{rack['id']}/drawer", data={'code': 'R1-B03', 'color': '#ff0000'})
    assert response.get_json()['drawerNotes'] == {'R1-B03': 'Kabel'}
    assert response.get_json()['drawerColors'] == {'R1-B03': '#ff0000'}

    # An explicitly empty note clears it, the color stays
    response = admin_client.post(f"/inventory/racks/{rack['id']}/drawer", data={'code': 'R1-B03', 'note': ''})
    assert response.get_json()['drawerNotes'] == {}
    assert response.get_json()['drawerColors'] == {'R1-B03': '#ff0000'}

    # JSON bodies behave the same way
    response = admin_client.post(f"/inventory/racks/{rack['id']}/drawer", json={'code': 'R1-B03', 'note': 'Kabel'})
    assert response.get_json()['drawerNotes'] == {'R1-B03': 'Kabel'}
    assert response.get_json()['drawerColors'] == {'R1-B03': '#ff0000'}

    assert admin_client.delete(f"/inventory/racks/{rack['id']}").status_code == 200
    assert Rack.query.count() == 0

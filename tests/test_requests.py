import io
import os
from datetime import date, datetime

import pytest

from business_portal import db
from business_portal.crypto import encrypt, encrypt_date
from business_portal.errors import ValidationFailed, Forbidden
from business_portal.models import OvertimeLeave
from business_portal.services import overtime_leave as svc
from business_portal.services.uploads import local_path


def test_create_and_decide(app, employee):
    item = svc.create_request(employee, 'LEAVE', date(2026, 3, 10), '  Acara keluarga ')
    assert item.status == 'PENDING'
    assert item.to_dict()['reason'] == 'Acara keluarga'
    assert svc.pending_count() == 1

    svc.update_status(item.id, 'APPROVED', admin_note='OK')
    assert svc.pending_count() == 0
    with pytest.raises(ValidationFailed, match='Only pending requests can be changed'):
        svc.update_status(item.id, 'REJECTED')


def test_only_owner_deletes_pending(app, employee, admin):
    item = svc.create_request(employee, 'VACATION', date(2026, 3, 10), 'Liburan')
    with pytest.raises(Forbidden):
        svc.delete_request(admin, item.id)
    svc.delete_request(employee, item.id)
    assert OvertimeLeave.query.count() == 0


def test_overtime_order_is_approved_immediately(app, employee):
    order = svc.create_overtime_order(employee.id, 'Pak Manager', 'Lembur stock opname', 75000)
    data = order.to_dict()
    assert data['status'] == 'APPROVED'
    assert data['type'] == 'OVERTIME'
    assert data['requesterName'] == 'Pak Manager'
    assert data['amount'] == 75000.0


def test_list_filters(app, employee, admin):
    svc.create_request(employee, 'LEAVE', date(2026, 3, 10), 'Cuti')
    svc.create_request(employee, 'OVERTIME_SUBMISSION', date(2026, 3, 11), 'Lembur', amount=50000)
    svc.create_request(employee, 'LEAVE', date(2026, 5, 10), 'Cuti lagi')
    svc.create_overtime_order(employee.id, 'Pak Manager', 'Packing', 75000)

    everything = svc.list_requests(admin)
    assert everything['total'] == 4

    leaves = svc.list_requests(admin, types=['LEAVE'], month=3, year=2026, calc_day=25)
    assert leaves['total'] == 1
    assert leaves['period'] == {'startDate': '2026-02-25', 'endDate': '2026-03-24'}

    orders = svc.list_requests(admin, types=['ORDER'])
    assert orders['total'] == 1
    assert svc.list_requests(admin, types=['OVERTIME_SUBMISSION'])['total'] == 1

    assert svc.list_requests(admin, own_only=True)['total'] == 0
    paged = svc.list_requests(employee, page=2, limit=3)
    assert paged['pages'] == 2
    assert len(paged['data']) == 1


def test_attachment_rules(employee_client):
    response = employee_client.post('/hr/requests', data={
        'type': 'LEAVE', 'date': '2026-03-10', 'reason': 'Sakit',
        'attachment': (io.BytesIO(b'MZ...'), 'virus.exe', 'application/octet-stream'),
    }, content_type='multipart/form-data')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Only JPEG, PNG, WEBP and PDF files are allowed'

    response = employee_client.post('/hr/requests', data={
        'type': 'LEAVE', 'date': '2026-03-10', 'reason': 'Sakit',
        'attachment': (io.BytesIO(b'%PDF-1.4'), 'surat dokter.pdf', 'application/pdf'),
    }, content_type='multipart/form-data')
    assert response.status_code == 201
    attachment = response.get_json()['attachment']
    assert attachment.startswith('/api/uploads/')
    assert os.path.exists(local_path(attachment))

    # Deleting a pending request removes its attachment
    request_id = response.get_json()['id']
    assert employee_client.delete(f'/hr/requests/{request_id}').status_code == 200
    assert not os.path.exists(local_path(attachment))


def test_oversized_attachment(employee_client):
    big = io.BytesIO(b'0' * (5 * 1024 * 1024 + 1))
    response = employee_client.post('/hr/requests', data={
        'type': 'LEAVE', 'date': '2026-03-10', 'reason': 'Sakit',
        'attachment': (big, 'scan.pdf', 'application/pdf'),
    }, content_type='multipart/form-data')
    assert response.get_json()['error'] == 'File too large (max 5MB)'


def test_decision_endpoints(admin_client, employee_client, employee):
    created = employee_client.post('/hr/requests', data={
        'type': 'OVERTIME_SUBMISSION', 'date': '2026-03-10', 'reason': 'Lembur', 'amount': '40000'}).get_json()

    assert employee_client.get('/hr/requests/pending-count').status_code == 403
    assert admin_client.get('/hr/requests/pending-count').get_json() == {'count': 1}

    decided = admin_client.post(f"/hr/requests/{created['id']}/status",
                                data={'status': 'APPROVED', 'amount': '45000'}).get_json()
    assert decided['status'] == 'APPROVED'
    assert decided['amount'] == 45000.0

    # Decided requests can no longer be withdrawn
    assert employee_client.delete(f"/hr/requests/{created['id']}").status_code == 400

    response = admin_client.post('/hr/requests/order', data={
        'user_id': str(employee.id), 'requester_name': 'Pak Manager', 'job': 'Packing', 'amount': '75000'})
    assert response.status_code == 201
    mine = employee_client.get('/hr/requests?type=ORDER').get_json()
    assert mine['total'] == 1


def test_overtime_submission_is_stored_as_overtime(app, employee):
    item = svc.create_request(employee, 'OVERTIME_SUBMISSION', date(2026, 3, 11), 'Lembur', amount=50000)
    assert item.type == 'OVERTIME'
    assert item.to_dict()['requesterName'] is None


def test_unknown_stored_types_match_no_filter(app, employee, admin):
    db.session.add(OvertimeLeave(
        user_id=employee.id,
        date_enc=encrypt_date(datetime(2026, 3, 11)),
        type_enc=encrypt('OVERTIME_SUBMISSION'),
        reason_enc=encrypt('Lembur lama'),
        status_enc=encrypt('PENDING'),
    ))
    db.session.commit()
    svc.create_request(employee, 'OVERTIME', date(2026, 3, 12), 'Lembur')

    assert svc.list_requests(admin, types=['OVERTIME_SUBMISSION'])['total'] == 1
    assert svc.list_requests(admin)['total'] == 1

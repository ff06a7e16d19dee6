from business_portal.models import LogActivity


def test_one_log_per_user_and_day(employee_client):
    employee_client.post('/log-activity', data={'date': '2026-03-02', 'activity': 'Rakit unit 1'})
    response = employee_client.post('/log-activity', data={'date': '2026-03-02', 'activity': 'Rakit unit 1-3',
                                                           'problem': 'Baut habis'})
    assert response.status_code == 200
    assert LogActivity.query.count() == 1
    logs = employee_client.get('/log-activity').get_json()
    assert logs[0]['activity'] == 'Rakit unit 1-3'
    assert logs[0]['problem'] == 'Baut habis'


def test_other_users_logs(admin_client, employee_client, employee, admin):
    employee_client.post('/log-activity', data={'date': '2026-03-02', 'activity': 'QC'})

    assert employee_client.get(f'/log-activity?user_id={admin.id}').status_code == 403
    assert len(admin_client.get(f'/log-activity?user_id={employee.id}').get_json()) == 1


def test_daily_recap(admin_client, employee_client, employee):
    employee_client.post('/log-activity', data={'date': '2026-03-02', 'activity': 'QC'})

    recap = admin_client.get('/log-activity/recap?date=2026-03-02').get_json()
    rows = {row['user']['id']: row for row in recap}
    assert rows[employee.id]['log']['activity'] == 'QC'
    assert all(row['log'] is None for user_id, row in rows.items() if user_id != employee.id)

    assert employee_client.get('/log-activity/recap?date=2026-03-02').get_json() == []


def test_delete_own_log(employee_client):
    log = employee_client.post('/log-activity', data={'date': '2026-03-02', 'activity': 'QC'}).get_json()
    assert employee_client.delete(f"/log-activity/{log['id']}").status_code == 200
    assert employee_client.get('/log-activity').get_json() == []

import csv
from io import StringIO
from types import SimpleNamespace

import pytest

from lumilib.extensions import socketio
from lumilib.models.borrow import BorrowRecord
from lumilib.models.reservation import Reservation

from conftest import login


@pytest.fixture
def library(app, make_user, make_book):
    with app.app_context():
        admin = make_user(username='admin', password='adminpass',
                          name='Administrator', role='admin')
        alice = make_user(username='alice', name='Alice')
        bob = make_user(username='bob', name='Bob')
        dbs = make_book(title='Database System Concepts', author='Abraham Silberschatz')
        sf = make_book(title='The Three-Body Problem', author='Liu Cixin',
                       category='Science Fiction')
    return SimpleNamespace(admin=admin.id, alice=alice.id, bob=bob.id, dbs=dbs.id, sf=sf.id)


def login_admin(client):
    return login(client, 'admin', 'adminpass', role='admin')


def test_login_and_me(client, library):
    response = login(client, 'alice')
    assert response.status_code == 200
    assert response.get_json()['user']['username'] == 'alice'
    assert 'credential' not in response.get_json()['user']

    assert client.get('/auth/me').get_json()['user']['id'] == library.alice

    client.post('/auth/logout')
    assert client.get('/auth/me').status_code == 401


def test_login_failure(client, library):
    response = login(client, 'alice', 'wrong')
    assert response.status_code == 401
    assert response.get_json() == {
        'success': False,
        'error': 'authentication_failed',
        'message': 'Invalid username or password'
    }


def test_reader_cannot_log_in_as_admin(client, library):
    assert login(client, 'alice', role='admin').status_code == 401


def test_protected_routes_need_login(client, library):
    response = client.post(f'/api/borrow/{library.dbs}')
    assert response.status_code == 401
    assert response.get_json()['error'] == 'not_authenticated'


def test_catalog_search(client, library):
    books = client.get('/api/books?q=liu').get_json()['books']
    assert [b['id'] for b in books] == [library.sf]

    books = client.get('/api/books?category=Computer Science').get_json()['books']
    assert [b['id'] for b in books] == [library.dbs]

    categories = client.get('/api/books/categories').get_json()['categories']
    assert categories == ['Computer Science', 'Science Fiction']


def test_book_detail(client, library):
    login(client, 'alice')
    client.post(f'/api/books/{library.dbs}/reviews', json={'rating': 4, 'content': 'Clear'})

    data = client.get(f'/api/books/{library.dbs}').get_json()
    assert data['book']['title'] == 'Database System Concepts'
    assert data['reviews'][0]['user_name'] == 'Alice'
    assert data['rating_stats']['average'] == 4
    assert data['queue_length'] == 0

    assert client.get('/api/books/999').status_code == 404


def test_borrow_and_return(client, library):
    login(client, 'alice')

    response = client.post(f'/api/borrow/{library.dbs}')
    assert response.status_code == 201
    record = response.get_json()['record']
    assert record['status'] == 'borrowed'
    assert record['book_title'] == 'Database System Concepts'

    again = client.post(f'/api/borrow/{library.dbs}')
    assert again.status_code == 409
    assert again.get_json()['error'] == 'book_unavailable'

    records = client.get('/api/records').get_json()
    assert records['summary']['open_loans'] == 1
    assert [r['id'] for r in records['records']] == [record['id']]

    returned = client.post(f'/api/return/{record["id"]}')
    assert returned.status_code == 200
    assert returned.get_json()['record']['status'] == 'returned'
    assert returned.get_json()['record']['fine'] == 0

    twice = client.post(f'/api/return/{record["id"]}')
    assert twice.status_code == 409
    assert twice.get_json()['error'] == 'already_returned'


def test_cannot_return_someone_elses_book(app, client, library):
    with app.app_context():
        record = BorrowRecord.borrow(library.bob, library.dbs)

    login(client, 'alice')
    assert client.post(f'/api/return/{record.id}').status_code == 403

    login_admin(client)
    assert client.post(f'/api/return/{record.id}').status_code == 200


def test_borrow_limit_from_saved_policy(client, library):
    login_admin(client)
    response = client.put('/admin/settings', json={'max_borrow_limit': 1})
    assert response.get_json()['settings']['max_borrow_limit'] == 1

    login(client, 'alice')
    assert client.post(f'/api/borrow/{library.dbs}').status_code == 201
    response = client.post(f'/api/borrow/{library.sf}')
    assert response.status_code == 409
    assert response.get_json()['error'] == 'limit_exceeded'


def test_frozen_reader_session_is_dropped(app, client, library):
    login(client, 'alice')
    admin_client = app.test_client()
    login_admin(admin_client)
    admin_client.put(f'/admin/users/{library.alice}', json={'status': 'frozen'})

    response = client.post(f'/api/borrow/{library.dbs}')
    assert response.status_code == 401
    assert client.get('/auth/me').status_code == 401


def test_reservation_flow(app, client, library):
    with app.app_context():
        BorrowRecord.borrow(library.bob, library.sf)

    login(client, 'alice')
    response = client.post(f'/api/reserve/{library.sf}')
    assert response.status_code == 201
    reservation = response.get_json()['reservation']
    assert reservation['queue_position'] == 1

    duplicate = client.post(f'/api/reserve/{library.sf}')
    assert duplicate.status_code == 409
    assert duplicate.get_json()['error'] == 'duplicate_reservation'

    listed = client.get('/api/reservations').get_json()['reservations']
    assert [r['id'] for r in listed] == [reservation['id']]

    cancel_url = f'/api/cancel-reservation/{reservation["id"]}'
    assert client.post(cancel_url).get_json()['reservation']['status'] == 'cancelled'
    again = client.post(cancel_url)
    assert again.status_code == 409
    assert again.get_json()['error'] == 'already_cancelled'


def test_cannot_cancel_someone_elses_reservation(app, client, library):
    with app.app_context():
        reservation = Reservation.create(library.bob, library.sf)

    login(client, 'alice')
    assert client.post(f'/api/cancel-reservation/{reservation.id}').status_code == 403


def test_notifications(app, client, library):
    with app.app_context():
        record = BorrowRecord.borrow(library.bob, library.sf)
        Reservation.create(library.alice, library.sf)
        BorrowRecord.return_book(record.id)

    login(client, 'alice')
    data = client.get('/api/notifications').get_json()
    assert data['unread_count'] == 1
    notification_id = data['notifications'][0]['id']

    assert client.post(f'/api/notifications/{notification_id}/read').status_code == 200
    assert client.get('/api/notifications').get_json()['unread_count'] == 0

    login(client, 'bob')
    assert client.post(f'/api/notifications/{notification_id}/read').status_code == 404


def test_invalid_review(client, library):
    login(client, 'alice')
    response = client.post(f'/api/books/{library.dbs}/reviews', json={'rating': 9})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'validation_error'


def test_profile(client, library):
    login(client, 'alice')
    response = client.put('/api/profile', json={'name': 'Alice L.', 'contact': '555-0100'})
    assert response.get_json()['user']['name'] == 'Alice L.'

    response = client.post('/api/profile/password',
                           json={'old_password': 'secret', 'new_password': 'changed'})
    assert response.status_code == 200
    client.post('/auth/logout')
    assert login(client, 'alice', 'changed').status_code == 200


def test_admin_routes_need_admin(client, library):
    login(client, 'alice')
    response = client.get('/admin/dashboard')
    assert response.status_code == 403
    assert response.get_json()['error'] == 'forbidden'


def test_dashboard(app, client, library):
    with app.app_context():
        BorrowRecord.borrow(library.alice, library.dbs)

    login_admin(client)
    data = client.get('/admin/dashboard').get_json()
    assert data['stats']['total_books'] == 2
    assert data['stats']['total_users'] == 3
    assert data['stats']['open_loans'] == 1
    assert data['stats']['borrowed_today'] == 1
    assert data['stats']['books_by_category'] == {'Computer Science': 1, 'Science Fiction': 1}
    assert data['settings']['max_borrow_limit'] == 10

    records = client.get('/admin/records?status=borrowed').get_json()['records']
    assert len(records) == 1
    assert client.get('/admin/records?status=returned').get_json()['records'] == []


def test_admin_user_management(client, library):
    login_admin(client)

    response = client.post('/admin/users', json={
        'username': 'carol', 'password': 'pw', 'name': 'Carol'
    })
    assert response.status_code == 201
    carol = response.get_json()['user']
    assert carol['role'] == 'reader'

    taken = client.post('/admin/users', json={'username': 'carol', 'password': 'pw', 'name': 'C'})
    assert taken.status_code == 409
    assert taken.get_json()['error'] == 'username_exists'

    role_change = client.put(f'/admin/users/{carol["id"]}', json={'role': 'admin'})
    assert role_change.status_code == 400

    users = client.get('/admin/users').get_json()['users']
    assert {u['username'] for u in users} == {'admin', 'alice', 'bob', 'carol'}

    assert client.delete(f'/admin/users/{carol["id"]}').status_code == 200
    assert client.delete(f'/admin/users/{library.admin}').status_code == 400
    assert client.delete('/admin/users/999').status_code == 404


def test_admin_cannot_delete_borrower(app, client, library):
    with app.app_context():
        BorrowRecord.borrow(library.bob, library.dbs)

    login_admin(client)
    response = client.delete(f'/admin/users/{library.bob}')
    assert response.status_code == 409
    assert response.get_json()['error'] == 'user_has_open_loans'


def test_admin_catalog(client, library):
    login_admin(client)
    response = client.post('/admin/books', json={'title': 'SICP', 'author': 'Abelson'})
    assert response.status_code == 201
    book_id = response.get_json()['book']['id']

    response = client.put(f'/admin/books/{book_id}/status', json={'status': 'lost'})
    assert response.get_json()['book']['status'] == 'lost'
    assert client.put(f'/admin/books/{book_id}/status',
                      json={'status': 'borrowed'}).status_code == 400
    assert client.post('/admin/books', json={'title': 'No author'}).status_code == 400


def test_maintenance_mode_login(client, library):
    login_admin(client)
    client.put('/admin/settings', json={'maintenance_mode': True, 'announcement': 'Back soon'})
    client.post('/auth/logout')

    response = login(client, 'alice')
    assert response.status_code == 503
    assert response.get_json()['error'] == 'maintenance_mode'
    assert login_admin(client).get_json()['announcement'] == 'Back soon'


def test_invalid_settings(client, library):
    login_admin(client)
    response = client.put('/admin/settings', json={'daily_fine_rate': -1})
    assert response.status_code == 400
    assert client.get('/api/settings').get_json()['settings']['daily_fine_rate'] == 0.5


def test_logs_export(client, library):
    login_admin(client)
    client.put('/admin/settings', json={'announcement': 'Exported'})

    response = client.get('/admin/logs/export')
    assert response.headers['Content-Type'].startswith('text/csv')
    rows = list(csv.reader(StringIO(response.get_data(as_text=True))))
    assert rows[0] == ['Timestamp', 'Action', 'Details', 'Type', 'User ID']
    assert rows[1][1] == 'Settings Update'
    assert rows[1][4] == str(library.admin)

    logs = client.get('/admin/logs?limit=1').get_json()['logs']
    assert len(logs) == 1

    response = client.post('/admin/logs/clear', json={'days': 'soon'})
    assert response.status_code == 400


def test_unknown_route_is_json(client):
    response = client.get('/api/nothing-here')
    assert response.status_code == 404
    assert response.get_json()['error'] == 'not_found'


def test_notification_is_pushed_to_user_room(app, client, library):
    with app.app_context():
        record = BorrowRecord.borrow(library.bob, library.sf)
        Reservation.create(library.alice, library.sf)

    login(client, 'alice')
    socket = socketio.test_client(app, flask_test_client=client)
    assert socket.is_connected()
    socket.get_received()

    with app.app_context():
        BorrowRecord.return_book(record.id)

    pushed = [m for m in socket.get_received() if m['name'] == 'notification']
    assert len(pushed) == 1
    assert pushed[0]['args'][0]['user_id'] == library.alice
    assert 'The Three-Body Problem' in pushed[0]['args'][0]['message']
    socket.disconnect()


def test_anonymous_socket_is_rejected(app):
    socket = socketio.test_client(app)
    assert not socket.is_connected()


def test_non_finite_fine_rate_is_rejected(client, library):
    login_admin(client)
    response = client.put('/admin/settings', json={'daily_fine_rate': 'nan'})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'validation_error'
    assert client.get('/api/settings').get_json()['settings']['daily_fine_rate'] == 0.5

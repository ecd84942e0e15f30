import pytest
from fastapi.testclient import TestClient

from conftest import NOW, add_appointment
from scheduler.auth.jwt_handler import create_access_token
from scheduler.core import clock
from scheduler.database import get_db
from scheduler.main import app


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[clock.now] = lambda: NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _auth(user) -> dict:
    return {'Authorization': f'Bearer {create_access_token(user.email)}'}


def _booking(start: str, end: str, duration_minutes: int = 30) -> dict:
    return {
        'title': 'Intro call',
        'kind': 'online',
        'start_time': start,
        'end_time': end,
        'duration_minutes': duration_minutes,
        'name': 'Olive Owner',
        'email': 'owner@example.com',
    }


def test_root_reports_status(client) -> None:
    response = client.get('/')

    assert response.status_code == 200
    assert response.json() == {'status': 'Appointment Scheduler API Running'}


def test_requests_without_token_are_unauthorized(client) -> None:
    response = client.get('/appointments')

    assert response.status_code == 401


def test_booking_flow_over_http(client, owner, admin) -> None:
    created = client.post(
        '/appointments',
        json=_booking('2030-01-07T10:00:00', '2030-01-07T10:30:00'),
        headers=_auth(owner),
    )
    assert created.status_code == 201
    body = created.json()
    assert body['status'] == 'pending'
    assert body['start_time'] == '2030-01-07T10:00:00'

    slots = client.get('/slots', params={'date': '2030-01-07', 'duration': 30}, headers=_auth(owner))
    assert slots.status_code == 200
    ten = next(slot for slot in slots.json()['slots'] if slot['start_time'] == '2030-01-07T10:00:00')
    assert ten['is_booked'] is True
    assert ten['available'] is False

    duplicate = client.post(
        '/appointments',
        json=_booking('2030-01-07T10:15:00', '2030-01-07T10:45:00'),
        headers=_auth(admin),
    )
    assert duplicate.status_code == 409

    forbidden = client.patch(f"/appointments/{body['id']}", json={'event': 'approve'}, headers=_auth(owner))
    assert forbidden.status_code == 403

    approved = client.patch(
        f"/appointments/{body['id']}",
        json={'event': 'approve', 'meeting_link': 'https://meet.example.com/intro'},
        headers=_auth(admin),
    )
    assert approved.status_code == 200
    assert approved.json()['status'] == 'approved'

    inbox = client.get('/notifications', headers=_auth(owner))
    assert inbox.status_code == 200
    assert [item['type'] for item in inbox.json()['notifications']].count('booking_approved') == 1


def test_invalid_payload_is_unprocessable(client, owner) -> None:
    response = client.post(
        '/appointments',
        json=_booking('2030-01-07T10:00:00', '2030-01-07T10:45:00', duration_minutes=45),
        headers=_auth(owner),
    )

    assert response.status_code == 422


def test_illegal_transition_is_bad_request(client, db, owner, admin) -> None:
    appointment = add_appointment(db, owner, NOW.replace(hour=9), 30, status='cancelled')

    response = client.patch(f'/appointments/{appointment.id}', json={'event': 'approve'}, headers=_auth(admin))

    assert response.status_code == 400
    assert response.json() == {'detail': 'Cannot approve an appointment that is cancelled.'}


def test_blocked_slot_lifecycle_over_http(client, owner, admin) -> None:
    created = client.post(
        '/blocked-slots',
        json={'start_time': '2030-01-07T12:00:00', 'end_time': '2030-01-07T13:00:00', 'reason': 'Lunch'},
        headers=_auth(admin),
    )
    assert created.status_code == 201

    booking = client.post(
        '/appointments',
        json=_booking('2030-01-07T12:30:00', '2030-01-07T13:00:00'),
        headers=_auth(owner),
    )
    assert booking.status_code == 409
    assert booking.json() == {'detail': 'This time is blocked.'}

    deleted = client.delete(f"/blocked-slots/{created.json()['id']}", headers=_auth(admin))
    assert deleted.status_code == 204

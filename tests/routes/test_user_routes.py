from datetime import datetime

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from conftest import add_appointment, add_user
from scheduler.models.notification import Notification
from scheduler.models.user import User
from scheduler.notifier import DatabaseNotificationDispatcher
from scheduler.routes.user_routes import UpdateRoleRequest, delete_user, list_users, update_user_role
from scheduler.scheduling.notifications import REMINDER, EventDescriptor
from scheduler.scheduling.state_machine import Actor


def test_update_role_request_rejects_unknown_role() -> None:
    assert UpdateRoleRequest(role=' Sub-Admin ').role == 'sub-admin'

    with pytest.raises(ValidationError):
        UpdateRoleRequest(role='owner')


def test_list_users_is_admin_only(db, owner, admin, owner_actor, admin_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_users(actor=owner_actor, db=db)
    assert exception_info.value.status_code == 403

    assert {user.id for user in list_users(actor=admin_actor, db=db)} == {owner.id, admin.id}


def test_admin_promotes_user_and_the_new_role_passes_admin_guard(db, owner, admin_actor) -> None:
    updated = update_user_role(user_id=owner.id, data=UpdateRoleRequest(role='sub-admin'), actor=admin_actor, db=db)

    assert updated.role == 'sub-admin'
    assert Actor(id=updated.id, role=updated.role).is_admin


def test_sub_admin_cannot_modify_super_admin(db, admin) -> None:
    sub_admin = add_user(db, 'sub@example.com', role='sub-admin')
    sub_actor = Actor(id=sub_admin.id, role=sub_admin.role)

    with pytest.raises(HTTPException) as exception_info:
        update_user_role(user_id=admin.id, data=UpdateRoleRequest(role='user'), actor=sub_actor, db=db)
    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Cannot modify a super-admin.'

    with pytest.raises(HTTPException) as exception_info:
        delete_user(user_id=admin.id, actor=sub_actor, db=db)
    assert exception_info.value.status_code == 403

    db.expire_all()
    assert db.get(User, admin.id).role == 'super-admin'


def test_update_role_for_missing_user(db, admin_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_user_role(user_id=404, data=UpdateRoleRequest(role='user'), actor=admin_actor, db=db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'User not found.'


def test_admin_deletes_user_and_their_inbox(db, other_user, admin_actor) -> None:
    DatabaseNotificationDispatcher(db).notify(
        other_user.id,
        EventDescriptor(type=REMINDER, title='Hello', message='Welcome.', recipient=other_user.id),
    )

    response = delete_user(user_id=other_user.id, actor=admin_actor, db=db)

    assert response == {'message': 'User deleted successfully'}
    assert db.query(User).filter(User.id == other_user.id).first() is None
    assert db.query(Notification).count() == 0


def test_admin_cannot_delete_themselves(db, admin_actor) -> None:
    with pytest.raises(HTTPException) as exception_info:
        delete_user(user_id=admin_actor.id, actor=admin_actor, db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Cannot delete yourself.'


def test_user_with_appointments_is_kept(db, owner, admin_actor) -> None:
    add_appointment(db, owner, datetime(2030, 1, 7, 10, 0))

    with pytest.raises(HTTPException) as exception_info:
        delete_user(user_id=owner.id, actor=admin_actor, db=db)

    assert exception_info.value.status_code == 400
    assert db.get(User, owner.id) is not None

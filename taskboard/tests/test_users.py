"""Tests for the user directory adapter and the account cascade."""

import pytest

from taskboard.errors import (
    ConflictError,
    InvalidInputError,
    InvalidReferenceError,
    NotFoundError,
    StorageFailure,
    UnauthorizedError,
)
from taskboard.models import Role
from taskboard.storage.memory import InMemoryUserService
from taskboard.users import UserDirectory


class TestRegister:
    def test_register_defaults_to_user_role(self, board):
        user = board.users.register_user({"name": " Kim ", "email": "kim@example.com"})
        assert user.role == Role.user
        assert user.name == "Kim"
        assert board.users.get_user(user.id) == user

    def test_duplicate_email_is_case_insensitive(self, board, owner):
        with pytest.raises(ConflictError):
            board.users.register_user({"name": "Dup", "email": "OLGA@example.com"})

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "", "email": "a@example.com"},
            {"name": "No At", "email": "example.com"},
            {"name": "Bad Role", "email": "r@example.com", "role": "root"},
        ],
    )
    def test_invalid_payload(self, board, payload):
        with pytest.raises(InvalidInputError):
            board.users.register_user(payload)

    def test_get_missing_user(self, board):
        with pytest.raises(NotFoundError):
            board.users.get_user("missing")

    def test_list_users(self, board, admin, owner):
        assert {u.id for u in board.users.list_users()} == {admin.id, owner.id}


class TestUpdate:
    def test_user_may_rename_self(self, board, owner):
        updated = board.users.update_user(owner, owner.id, {"name": "Olga O."})
        assert updated.name == "Olga O."
        assert updated.email == owner.email
        assert updated.created_at == owner.created_at

    def test_user_may_not_change_own_role(self, board, owner):
        with pytest.raises(UnauthorizedError):
            board.users.update_user(owner, owner.id, {"role": "admin"})
        assert board.users.get_user(owner.id).role == Role.user

    def test_user_may_not_edit_others(self, board, owner, stranger):
        with pytest.raises(UnauthorizedError):
            board.users.update_user(owner, stranger.id, {"name": "Hacked"})

    def test_admin_may_change_roles(self, board, admin, owner):
        updated = board.users.update_user(admin, owner.id, {"role": "admin"})
        assert updated.role == Role.admin

    def test_email_conflict(self, board, owner, stranger):
        with pytest.raises(ConflictError):
            board.users.update_user(owner, owner.id, {"email": stranger.email})

    def test_keeping_own_email_is_not_a_conflict(self, board, owner):
        updated = board.users.update_user(owner, owner.id, {"email": owner.email.upper()})
        assert updated.email == owner.email.upper()


class TestDeleteCascade:
    def test_admin_deletes_user_with_tasks_and_blobs(
        self, board, admin, owner, stranger, blobs, repository
    ):
        t1 = board.tasks.create_task(owner, {"title": "T1"})
        t2 = board.tasks.create_task(owner, {"title": "T2"})
        kept = board.tasks.create_task(stranger, {"title": "Not Olga's"})
        a1 = board.attachments.upload_attachment(owner, t1.id, "a", 1, b"a")
        a2 = board.attachments.upload_attachment(owner, t2.id, "b", 1, b"b")

        removed = board.users.delete_user(admin, owner.id)

        assert removed == 2
        assert [t.id for t in repository.list()] == [kept.id]
        for ref in (a1.content_ref, a2.content_ref):
            with pytest.raises(NotFoundError):
                blobs.fetch(ref)
        with pytest.raises(NotFoundError):
            board.users.get_user(owner.id)

    def test_tasks_removed_before_user(self, board, admin, owner, user_service, events):
        task = board.tasks.create_task(owner, {"title": "T1"})
        seen_user_during_delete = []
        original_delete = user_service.delete

        def delete(user_id):
            seen_user_during_delete.append(("delete", task.id) in events)
            original_delete(user_id)

        user_service.delete = delete
        board.users.delete_user(admin, owner.id)
        assert seen_user_during_delete == [True]

    def test_non_admin_may_not_delete(self, board, owner, stranger):
        with pytest.raises(UnauthorizedError):
            board.users.delete_user(owner, stranger.id)
        assert board.users.get_user(stranger.id) == stranger

    def test_admin_may_not_delete_self(self, board, admin):
        with pytest.raises(UnauthorizedError):
            board.users.delete_user(admin, admin.id)
        assert board.users.get_user(admin.id) == admin

    def test_missing_user(self, board, admin):
        with pytest.raises(NotFoundError):
            board.users.delete_user(admin, "missing")

    def test_deleted_actor_is_rejected(self, board, admin, owner, task):
        board.users.delete_user(admin, owner.id)
        with pytest.raises(UnauthorizedError):
            board.tasks.list_tasks(owner)

    def test_deleted_user_is_dropped_from_other_tasks(
        self, board, admin, owner, assignee, stranger, task
    ):
        board.users.delete_user(admin, assignee.id)

        assert board.tasks.get_task(owner, task.id).assigned_users == []
        updated = board.tasks.assign_user(owner, task.id, stranger.id)
        assert updated.assigned_users == [stranger.id]
        resent = board.tasks.update_task(
            owner, task.id, {"assigned_users": updated.assigned_users}
        )
        assert resent.assigned_users == [stranger.id]

    def test_user_being_deleted_cannot_act_or_be_assigned(
        self, board, admin, owner, stranger, user_service
    ):
        other = board.tasks.create_task(stranger, {"title": "Stan's"})
        attempts = {}
        original_delete = user_service.delete

        def delete(user_id):
            for name, call in (
                ("create", lambda: board.tasks.create_task(owner, {"title": "Late"})),
                ("assign", lambda: board.tasks.assign_user(stranger, other.id, owner.id)),
            ):
                try:
                    call()
                except (UnauthorizedError, InvalidReferenceError) as exc:
                    attempts[name] = type(exc)
            original_delete(user_id)

        user_service.delete = delete
        board.users.delete_user(admin, owner.id)

        assert attempts == {"create": UnauthorizedError, "assign": InvalidReferenceError}
        assert board.tasks.get_task(stranger, other.id).assigned_users == []

    def test_task_created_during_cascade_is_rolled_back(
        self, board, admin, owner, repository
    ):
        original_put = repository.put
        fired = []

        def put(task):
            if task.title == "Late" and not fired:
                fired.append(task.id)
                board.users.delete_user(admin, owner.id)
            original_put(task)

        repository.put = put
        with pytest.raises(UnauthorizedError):
            board.tasks.create_task(owner, {"title": "Late"})

        assert fired
        assert repository.get(fired[0]) is None
        assert [t for t in repository.list() if t.owner_id == owner.id] == []

    def test_second_concurrent_delete_conflicts(self, board, admin, owner, user_service):
        seen = []
        original_delete = user_service.delete

        def delete(user_id):
            with pytest.raises(ConflictError):
                board.users.delete_user(admin, user_id)
            seen.append(user_id)
            original_delete(user_id)

        user_service.delete = delete
        board.users.delete_user(admin, owner.id)
        assert seen == [owner.id]

    def test_failed_cascade_leaves_account_usable(
        self, board, admin, owner, blobs
    ):
        task = board.tasks.create_task(owner, {"title": "T1"})
        attachment = board.attachments.upload_attachment(owner, task.id, "a", 1, b"a")
        blobs.fail_remove.add(attachment.content_ref)

        with pytest.raises(StorageFailure):
            board.users.delete_user(admin, owner.id)

        assert board.users.get_user(owner.id) == owner
        assert [t.id for t in board.tasks.list_tasks(owner)] == [task.id]

    def test_unbound_directory_refuses_cascade(self):
        service = InMemoryUserService()
        users = UserDirectory(service)
        root = users.register_user({"name": "Root", "email": "root@example.com", "role": "admin"})
        other = users.register_user({"name": "Other", "email": "other@example.com"})
        with pytest.raises(RuntimeError):
            users.delete_user(root, other.id)
        assert service.get(other.id) is not None

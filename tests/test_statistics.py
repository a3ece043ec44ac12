import pytest

from taskmanager import models
from taskmanager.errors import PermissionDeniedError
from taskmanager.services import StatisticsService


@pytest.fixture
def populated(session, make_user):
    """Two users with a known spread of tasks and groups.

    boss (admin): group "Ops" with 3 tasks (1 completed, 1 in progress), 1 ungrouped task
    worker: group "Home" with 1 pending task, empty group "Empty", 1 completed ungrouped task
    """
    boss = make_user('boss', admin=True)
    worker = make_user('worker')

    ops = models.Group(name='Ops', user_id=boss.id)
    home = models.Group(name='Home', user_id=worker.id)
    empty = models.Group(name='Empty', user_id=worker.id)
    session.add_all([ops, home, empty])
    session.commit()

    S = models.TaskStatus
    session.add_all([
        models.Task(title='deploy', user_id=boss.id, group_id=ops.id, status=S.COMPLETED),
        models.Task(title='monitor', user_id=boss.id, group_id=ops.id, status=S.IN_PROGRESS),
        models.Task(title='backup', user_id=boss.id, group_id=ops.id),
        models.Task(title='read', user_id=boss.id),
        models.Task(title='cook', user_id=worker.id, group_id=home.id),
        models.Task(title='walk', user_id=worker.id, status=S.COMPLETED),
    ])
    session.commit()
    return boss, worker


def test_admin_gets_global_statistics(session, populated):
    boss, _ = populated
    stats = StatisticsService(session, boss).get_statistics()
    assert stats.total_users == 2
    assert stats.total_tasks == 6
    assert stats.total_groups == 3
    assert stats.pending_tasks == 3
    assert stats.in_progress_tasks == 1
    assert stats.completed_tasks == 2
    assert stats.tasks_with_group == 4
    assert stats.tasks_without_group == 2
    assert stats.top_groups == 'Ops (3 tasks), Home (1 tasks), Empty (0 tasks)'
    assert stats.top_users == 'boss (4 tasks), worker (2 tasks)'


def test_regular_user_gets_personal_statistics(session, populated):
    _, worker = populated
    stats = StatisticsService(session, worker).get_statistics()
    assert stats.total_users == 1
    assert stats.total_tasks == 2
    assert stats.total_groups == 2
    assert stats.pending_tasks == 1
    assert stats.completed_tasks == 1
    assert stats.tasks_with_group == 1
    assert stats.tasks_without_group == 1
    assert stats.top_groups == 'Available to administrators only'
    assert stats.top_users == 'Available to administrators only'


def test_empty_database_reports_no_data(session, make_user):
    admin = make_user('lonely', admin=True)
    stats = StatisticsService(session, admin).get_dashboard_statistics()
    assert stats.total_tasks == 0
    assert stats.top_groups == 'No data'
    assert stats.top_users == 'lonely (0 tasks)'
    assert stats.completion_rate == 0.0


def test_group_statistics_are_scoped_to_owner(session, populated):
    boss, worker = populated
    rows = StatisticsService(session, boss).get_group_statistics()
    assert [(r.group_name, r.owner_username, r.task_count, r.completed_tasks, r.pending_tasks) for r in rows] == [
        ('Ops', 'boss', 3, 1, 1),
        ('Home', 'worker', 1, 0, 1),
        ('Empty', 'worker', 0, 0, 0),
    ]
    own = StatisticsService(session, worker).get_group_statistics()
    assert [r.group_name for r in own] == ['Home', 'Empty']


def test_user_statistics_do_not_multiply_counts(session, populated):
    boss, _ = populated
    rows = StatisticsService(session, boss).get_user_statistics()
    assert [(r.username, r.task_count, r.group_count, r.completed_tasks) for r in rows] == [
        ('boss', 4, 1, 1),
        ('worker', 2, 2, 1),
    ]


def test_top_lists_are_capped_at_five(session, make_user):
    admin = make_user('chief', admin=True)
    for i in range(7):
        group = models.Group(name=f'g{i}', user_id=admin.id)
        session.add(group)
        session.commit()
        for _ in range(i):
            session.add(models.Task(title='t', user_id=admin.id, group_id=group.id))
        session.commit()
    top = StatisticsService(session, admin).get_top_groups()
    assert [g.group_name for g in top] == ['g6', 'g5', 'g4', 'g3', 'g2']
    assert len(StatisticsService(session, admin).get_top_users()) == 1


def test_admin_only_statistics_reject_regular_users(session, populated):
    _, worker = populated
    svc = StatisticsService(session, worker)
    for call in (svc.get_user_statistics, svc.get_top_groups, svc.get_top_users):
        with pytest.raises(PermissionDeniedError):
            call()


def test_dashboard_completion_rate(session, populated):
    boss, worker = populated
    assert StatisticsService(session, boss).get_dashboard_statistics().completion_rate == 33.33
    assert StatisticsService(session, worker).get_dashboard_statistics().completion_rate == 50.0


def test_statistics_endpoints_enforce_admin_role(client, admin_headers, new_user_headers):
    headers = new_user_headers()
    for path in ('/api/statistics/users', '/api/statistics/top-groups', '/api/statistics/top-users'):
        assert client.get(path, headers=headers).status_code == 403
        assert client.get(path, headers=admin_headers).status_code == 200

    mine = client.get('/api/statistics', headers=headers).json()
    assert mine['total_users'] == 1
    assert mine['total_tasks'] == 0
    assert client.get('/api/statistics/groups', headers=headers).json() == []

    dashboard = client.get('/api/statistics/dashboard', headers=admin_headers).json()
    assert dashboard['completion_rate'] is not None
    assert dashboard['total_users'] >= 2


def test_completion_rate_only_on_dashboard(client, new_user_headers):
    headers = new_user_headers()
    assert 'completion_rate' not in client.get('/api/statistics', headers=headers).json()
    assert client.get('/api/statistics/dashboard', headers=headers).json()['completion_rate'] == 0.0

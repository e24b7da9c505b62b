from taskhub.errors import AlreadyCompleted, InvalidReason, NotAssignee, PermissionDenied, InvalidInput
from tests.test_utils_seed import make_user, login_headers


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    # Flask default 404 should be wrapped by error handler
    assert resp.status_code == 404
    body = resp.get_json()
    assert 'error' in body
    assert body['error']['status'] == 404
    assert 'detail' in body['error']
    assert 'code' not in body['error']


def test_internal_error_shape(client, monkeypatch):
    headers = login_headers(client, make_user('MANAGER'))
    # Monkeypatch AFTER login so auth works; only break the report query
    import taskhub.routes.reports as reports_mod

    class BoomSession:
        def query(self, *a, **k):
            raise RuntimeError('explode')

        def get(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(reports_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/reports/summary', headers=headers)
    assert resp.status_code == 500
    body = resp.get_json()
    assert body['error']['status'] == 500
    assert body['error']['title'] == 'Internal Server Error'


def test_domain_error_hierarchy():
    assert issubclass(NotAssignee, PermissionDenied)
    assert issubclass(InvalidReason, InvalidInput)
    err = AlreadyCompleted('Task 3 is already completed', resource='TASK', action='UPDATE', record_id=3)
    assert err.code == 409
    assert err.description == 'Task 3 is already completed'
    assert err.error_code == 'ALREADY_COMPLETED'
    assert err.context() == {'resource': 'TASK', 'action': 'UPDATE', 'record_id': 3}


def test_default_description_used_without_detail():
    assert InvalidReason().description == 'Rejection reason must be at least 10 characters'

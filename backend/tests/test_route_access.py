import pytest
from taskhub.constants.permissions import Role, RouteAccess
from taskhub.services.access import can_access_route, find_route_rule, accessible_routes

ROUTES = (
    RouteAccess('/dashboard', frozenset(Role), exact=True),
    RouteAccess('/dashboard/users', frozenset({Role.MANAGER})),
    RouteAccess('/dashboard/users/me', frozenset(Role), exact=True),
    RouteAccess('/dashboard/reports', frozenset({Role.MANAGER})),
)


def test_exact_rule_beats_prefix():
    assert find_route_rule('/dashboard/users/me', ROUTES).exact
    assert can_access_route(Role.EMPLOYEE, '/dashboard/users/me', ROUTES)
    assert not can_access_route(Role.EMPLOYEE, '/dashboard/users/12', ROUTES)


def test_prefix_matches_on_segment_boundary_only():
    assert find_route_rule('/dashboard/users', ROUTES).path == '/dashboard/users'
    assert find_route_rule('/dashboard/usersettings', ROUTES) is None


def test_exact_rule_does_not_cover_children():
    # '/dashboard' is exact, so a child without its own rule is unconfigured
    assert find_route_rule('/dashboard/unknown', ROUTES) is None


def test_admin_always_allowed():
    assert can_access_route(Role.ADMIN, '/dashboard/reports', ROUTES)
    assert can_access_route('ADMINISTRATOR', '/anything', ROUTES, default_allow=False)


def test_unconfigured_path_default():
    assert can_access_route(Role.EMPLOYEE, '/elsewhere', ROUTES)
    assert not can_access_route(Role.EMPLOYEE, '/elsewhere', ROUTES, default_allow=False)


def test_default_follows_app_config(app_instance):
    with app_instance.app_context():
        app_instance.config['ROUTE_ACCESS_DEFAULT_ALLOW'] = False
        try:
            assert not can_access_route(Role.MANAGER, '/elsewhere', ROUTES)
        finally:
            app_instance.config['ROUTE_ACCESS_DEFAULT_ALLOW'] = True


@pytest.mark.parametrize('raw', ['VIEWER', None, 'bogus'])
def test_raw_roles_are_normalized(raw):
    assert not can_access_route(raw, '/dashboard/reports', ROUTES)


def test_configured_table_staff_only_sections():
    assert not can_access_route(Role.EMPLOYEE, '/dashboard/users')
    assert not can_access_route(Role.EMPLOYEE, '/dashboard/reports/monthly')
    assert can_access_route(Role.MANAGER, '/dashboard/users')
    assert can_access_route(Role.EMPLOYEE, '/dashboard/tasks/5')
    assert can_access_route(Role.EMPLOYEE, '/dashboard')


def test_accessible_routes_lists_visible_entries():
    paths = [r.path for r in accessible_routes(Role.MANAGER, ROUTES)]
    assert paths == ['/dashboard', '/dashboard/users', '/dashboard/users/me', '/dashboard/reports']
    assert [r.path for r in accessible_routes(Role.EMPLOYEE, ROUTES)] == ['/dashboard', '/dashboard/users/me']


def test_admin_sees_every_route():
    assert len(accessible_routes(Role.ADMIN, ROUTES)) == len(ROUTES)

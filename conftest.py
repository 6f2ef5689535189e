import os

import django
from django.conf import settings
from django.test.utils import get_runner, setup_test_environment, teardown_test_environment


def pytest_configure(config):
    os.environ.setdefault("SECRET_KEY", "test-secret")
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "test_settings")


def pytest_sessionstart(session):
    django.setup()
    setup_test_environment()
    test_runner_class = get_runner(settings)
    session._django_runner = test_runner_class(verbosity=1, interactive=False)
    session._django_db_cfg = session._django_runner.setup_databases()


def pytest_sessionfinish(session, exitstatus):
    runner = getattr(session, "_django_runner", None)
    db_cfg = getattr(session, "_django_db_cfg", None)
    if runner and db_cfg:
        runner.teardown_databases(db_cfg)
    teardown_test_environment()


def pytest_collection_modifyitems(config, items):
    for item in items:
        item.add_marker("backend")

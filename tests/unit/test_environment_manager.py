import pytest

from stackplan.MANAGERS.environment_manager import EnvironmentManager
from stackplan.MODELS.errors import StackplanError


def test_base_environment_only():
    manager = EnvironmentManager(base_env={'HOME': '/root'})
    assert manager.get_context() == {'HOME': '/root'}


def test_process_environment_is_default(monkeypatch):
    monkeypatch.setenv('STACKPLAN_TEST_VAR', 'here')
    assert EnvironmentManager().get_context()['STACKPLAN_TEST_VAR'] == 'here'


def test_env_files_override_in_order(tmp_path):
    (tmp_path / 'base.env').write_text(
        'DATABASE_HOST=localhost\n'
        '# comment\n'
        'RAILS_ENV="development"\n'
        'EMPTY_KEY\n'
    )
    (tmp_path / 'local.env').write_text("DATABASE_HOST='db'\n")

    manager = EnvironmentManager(base_dir=str(tmp_path), base_env={'DATABASE_HOST': 'shell', 'KEEP': '1'})
    context = manager.get_context(['base.env', 'local.env'])

    assert context['DATABASE_HOST'] == 'db'
    assert context['RAILS_ENV'] == 'development'
    assert context['KEEP'] == '1'
    assert 'EMPTY_KEY' not in context


def test_missing_env_file(tmp_path):
    manager = EnvironmentManager(base_dir=str(tmp_path), base_env={})
    with pytest.raises(StackplanError, match='env file not found'):
        manager.get_context(['missing.env'])

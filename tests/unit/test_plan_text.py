from stackplan.CONVERTERS.to_text import PlanTextConverter
from stackplan.MODELS.plan import Plan
from stackplan.RUNNERS.dependency_resolver import resolve
from stackplan.RUNNERS.plan_renderer import render


def test_convert(blog_topology):
    plan = render(blog_topology, resolve(blog_topology), {'DATABASE_HOST': 'db'})
    text = PlanTextConverter().convert(plan)
    lines = text.splitlines()

    assert lines[0] == 'Plan for project blog (5 steps)'
    steps = [line.strip() for line in lines if line.strip()[:1].isdigit()]
    assert steps == [
        '1. CreateVolume(pg_data)',
        '2. StartService(db)',
        '3. WaitHealthy(db)',
        '4. BuildImage(web)',
        '5. StartService(web)',
    ]
    assert 'volume blog_pg_data' in text
    assert 'ports 3000:3000' in text
    assert 'env DATABASE_HOST, RAILS_ENV' in text
    assert 'DATABASE_HOST=db' not in text


def test_convert_shows_values(blog_topology):
    plan = render(blog_topology, resolve(blog_topology), {'DATABASE_HOST': 'db'})
    text = PlanTextConverter(show_env=True).convert(plan)
    assert 'env DATABASE_HOST=db' in text


def test_convert_empty_plan():
    text = PlanTextConverter().convert(Plan(project='empty'))
    assert text.strip() == 'Plan for project empty (0 steps)'

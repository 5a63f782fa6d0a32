import pytest

BLOG_TOPOLOGY = """\
name: blog
services:
  db:
    image: postgres:16
    environment:
      POSTGRES_PASSWORD: ${DB_PASSWORD:-postgres}
    volumes:
      - pg_data:/var/lib/postgresql/data
    healthcheck:
      test: ["CMD", "pg_isready", "-U", "postgres"]
      interval: 2s
      retries: 5
  web:
    build: .
    command: bundle exec rails server -b 0.0.0.0
    depends_on:
      - db
    ports:
      - "3000:3000"
    environment:
      DATABASE_HOST: ${DATABASE_HOST}
      RAILS_ENV: development
    volumes:
      - .:/usr/src/app
volumes:
  pg_data: {}
"""


@pytest.fixture
def blog_yaml():
    return BLOG_TOPOLOGY


@pytest.fixture
def blog_file(tmp_path):
    path = tmp_path / "stack.yml"
    path.write_text(BLOG_TOPOLOGY)
    return path


@pytest.fixture
def blog_topology():
    from stackplan.PARSERS.topology_parser import parse
    return parse(BLOG_TOPOLOGY)

import random
import string

import yaml

from stackplan.MODELS.errors import StackplanError
from stackplan.PARSERS.topology_parser import TopologyParser, parse
from stackplan.RUNNERS.dependency_resolver import resolve
from stackplan.RUNNERS.plan_renderer import render


def random_string(rng, length):
    return ''.join(rng.choice(string.printable) for _ in range(length))


def random_value(rng, depth=0):
    """Random YAML-representable junk, nested a little."""
    choice = rng.randint(0, 7 if depth < 3 else 4)
    if choice == 0:
        return None
    if choice == 1:
        return rng.randint(-5, 70000)
    if choice == 2:
        return rng.choice([True, False, 1.5, float('inf')])
    if choice in (3, 4):
        return rng.choice(['', 'web', 'db', '8080:80', 'a:b:c', '${X}', '$${Y}', './x:/y', 'pg:/data:ro'])
    if choice in (5, 6):
        return [random_value(rng, depth + 1) for _ in range(rng.randint(0, 3))]
    keys = ['image', 'build', 'environment', 'volumes', 'ports', 'depends_on',
            'healthcheck', 'command', 'test', 'web', 'db', 'persistent']
    return {rng.choice(keys): random_value(rng, depth + 1) for _ in range(rng.randint(0, 4))}


def test_fuzz_topology_parser():
    rng = random.Random(1234)
    parser = TopologyParser()
    for _ in range(200):
        content = random_string(rng, rng.randint(0, 500))
        try:
            parser.parse_from_string(content)
        except StackplanError:
            pass


def test_fuzz_structured_documents():
    rng = random.Random(4321)
    for _ in range(300):
        document = {
            'services': {name: random_value(rng) for name in rng.sample(['web', 'db', 'cache'], rng.randint(0, 3))},
            'volumes': rng.choice([None, {'pg': None}, {'pg': random_value(rng)}]),
        }
        try:
            topology = parse(document)
            render(topology, resolve(topology), {})
        except StackplanError:
            pass


def test_edge_cases_parsers():
    parser = TopologyParser()

    # Empty string
    assert parser.parse_from_string("").services == {}

    # Only whitespace
    assert parser.parse_from_string("   \n\t  ").services == {}

    # Only comments
    assert parser.parse_from_string("# nothing here\n").services == {}

    # Explicit nulls
    assert parser.parse_from_string(yaml.safe_dump({'services': None, 'volumes': None})).services == {}

import pytest

from stackplan.UTILS.string_interpolation import EnvironmentInterpolator


def test_interpolate():
    context = {'HOST': 'db', 'EMPTY': ''}
    assert EnvironmentInterpolator.interpolate('postgres://${HOST}:5432', context) == 'postgres://db:5432'
    assert EnvironmentInterpolator.interpolate('${MISSING:-fallback}', context) == 'fallback'
    assert EnvironmentInterpolator.interpolate('${EMPTY:-fallback}', context) == 'fallback'
    assert EnvironmentInterpolator.interpolate('${HOST:+set}', context) == 'set'
    assert EnvironmentInterpolator.interpolate('${MISSING:+set}', context) == ''
    assert EnvironmentInterpolator.interpolate('cost: $$5 ${HOST}', context) == 'cost: $5 db'
    assert EnvironmentInterpolator.interpolate('plain $HOST', context) == 'plain $HOST'


def test_interpolate_missing_raises():
    with pytest.raises(KeyError):
        EnvironmentInterpolator.interpolate('${MISSING}', {})


def test_interpolate_collects_missing():
    missing = []
    result = EnvironmentInterpolator.interpolate('${A}-${B}-${A}-${C:-c}', {'B': 'b'}, missing)
    assert result == '-b--c'
    assert missing == ['A']


def test_variables():
    assert EnvironmentInterpolator.variables('${A}${B:-x}$${C}${A}') == ['A', 'B']


def test_sole_reference():
    assert EnvironmentInterpolator.sole_reference('${HOST}') == ('HOST', None)
    assert EnvironmentInterpolator.sole_reference('${HOST:-db}') == ('HOST', 'db')
    assert EnvironmentInterpolator.sole_reference('${HOST:+db}') is None
    assert EnvironmentInterpolator.sole_reference('x${HOST}') is None
    assert EnvironmentInterpolator.sole_reference('db') is None
    assert EnvironmentInterpolator.sole_reference('${HOST}\n') is None
    assert EnvironmentInterpolator.sole_reference('${my-var}') == ('my-var', None)


def test_reference_is_inverse_of_sole_reference():
    for variable, default in [('HOST', None), ('HOST', 'db'), ('HOST', '')]:
        text = EnvironmentInterpolator.reference(variable, default)
        assert EnvironmentInterpolator.sole_reference(text) == (variable, default)

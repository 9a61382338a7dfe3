import pytest

from autoflow.core.conditions import ConditionEvaluator


@pytest.fixture
def evaluator():
    return ConditionEvaluator()


def test_placeholder_comparison_true(evaluator):
    assert evaluator.evaluate("{{temperature}} > 30", {"temperature": 31}) is True


def test_data_reference_comparison_false(evaluator):
    assert evaluator.evaluate("data.temperature > 30", {"temperature": 25}) is False


def test_missing_reference_is_false(evaluator):
    assert evaluator.evaluate("data.missing > 30", {"temperature": 31}) is False


def test_nested_paths_and_list_indexes(evaluator):
    data = {"weather": {"readings": [{"value": 12}, {"value": 40}]}}
    assert evaluator.evaluate("data.weather.readings.1.value >= 40", data) is True


@pytest.mark.parametrize("condition,expected", [
    ("data.a > 1 && data.b < 2", True),
    ("data.a > 5 || data.b < 2", True),
    ("!(data.a > 1)", False),
    ("data.a > 1 && (data.b > 5 || data.flag)", True),
    ("data.name == 'alice'", True),
    ("data.name === \"alice\"", True),
    ("data.name !== 'bob'", True),
    ("data.flag == true", True),
    ("data.nothing == null", True),
    ("data.flag", True),
])
def test_boolean_combinations(evaluator, condition, expected):
    data = {"a": 3, "b": 1, "name": "alice", "flag": True, "nothing": None}
    assert evaluator.evaluate(condition, data) is expected


def test_mixed_type_ordering_is_false(evaluator):
    assert evaluator.evaluate("data.temperature > 30", {"temperature": "31"}) is False


@pytest.mark.parametrize("condition", [
    "",
    "   ",
    "data.a >",
    "(data.a > 1",
    "data.a > 1 )",
    "temperature > 30",
    "__import__('os').system('true')",
    "data.a ; 1",
])
def test_malformed_or_unsafe_conditions_are_false(evaluator, condition):
    assert evaluator.evaluate(condition, {"a": 3}) is False


def test_non_mapping_data(evaluator):
    assert evaluator.evaluate("data.x == 1", None) is False
    assert evaluator.evaluate("1 < 2", None) is True


def test_deeply_nested_parentheses_are_false(evaluator):
    condition = "(" * 2000 + "data.t > 1" + ")" * 2000
    assert evaluator.evaluate(condition, {"t": 5}) is False


def test_moderate_nesting_still_evaluates(evaluator):
    condition = "(" * 10 + "data.t > 1" + ")" * 10
    assert evaluator.evaluate(condition, {"t": 5}) is True


def test_long_negation_chain(evaluator):
    assert evaluator.evaluate("!" * 5000 + "true", {}) is True
    assert evaluator.evaluate("!" * 5001 + "true", {}) is False
    assert evaluator.evaluate("!!data.t", {"t": 0}) is False


def test_reference_to_none_value_resolves(evaluator):
    assert evaluator.evaluate("data.value == null", {"value": None}) is True
    assert evaluator.evaluate("data.other == null", {"value": None}) is False

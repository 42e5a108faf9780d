"""
Tests for the body walker: complexity metrics, operations, dynamic fields.
"""

import pytest

from routescribe.config import Settings
from routescribe.core.engine import AnalysisSession


@pytest.fixture
def metrics(metrics_controller, schemas):
    session = AnalysisSession(settings=Settings(include_simple_methods=True), schema_provider=schemas)
    return session.analyze(metrics_controller)


def test_straight_line_method_has_base_complexity(metrics):
    assert metrics["flat"].complexity.cyclomatic == 1
    assert metrics["flat"].complexity.max_nesting == 0


def test_branch_adds_one(metrics):
    assert metrics["branch"].complexity.cyclomatic == 2


def test_connectives_in_condition_count(metrics):
    # if (+1) and && (+1)
    assert metrics["both"].complexity.cyclomatic == 3
    condition = metrics["both"].body.conditions[0]
    assert condition.kind == "if"
    assert condition.complexity == 2


def test_loops_branches_and_catch(metrics):
    busy = metrics["busy"]
    assert busy.complexity.cyclomatic == 6
    assert busy.complexity.max_nesting == 2
    assert busy.body.loops == ["foreach"]


def test_cognitive_complexity_grows_with_nesting(metrics):
    assert metrics["flat"].complexity.cognitive == 0
    assert metrics["busy"].complexity.cognitive > metrics["both"].complexity.cognitive


def test_store_operations(post_analyses):
    ops = post_analyses["store"].body.operations
    assert ops.transaction is True
    assert "transaction" in ops.database
    assert "forget" in ops.cache


def test_eager_relations(post_analyses):
    assert post_analyses["index"].body.operations.eager_relations == ["author"]
    assert post_analyses["show"].body.operations.eager_relations == ["comments"]


def test_resources_collected(post_analyses):
    index_resources = post_analyses["index"].body.operations.api_resources
    assert index_resources[0].class_name == "App\\Http\\Resources\\PostResource"
    assert index_resources[0].is_collection is True

    show_resources = post_analyses["show"].body.operations.api_resources
    assert show_resources[0].is_collection is False


def test_closure_returns_are_not_responses(post_analyses):
    # Only the outer response()->json(...) return is recorded
    assert len(post_analyses["store"].body.operations.responses) == 1


def test_parameters_seeded_as_variables(post_analyses):
    variables = post_analyses["show"].body.variables
    assert variables["post"].class_name == "App\\Models\\Post"


def test_dynamic_field_assignment(session, report_controller):
    analyses = session.analyze(report_controller, "decorate")
    fields = analyses["decorate"].body.operations.dynamic_fields
    assert [(f.field, f.value_type) for f in fields] == [("score_total", "integer")]

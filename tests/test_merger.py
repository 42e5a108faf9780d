"""
Tests for the analysis merger: operation type, response shapes, propagation.
"""

from routescribe.config import Settings
from routescribe.core.engine import AnalysisSession
from routescribe.core.merger import operation_from_name, operation_type
from routescribe.models.analysis_models import MethodAnalysis, ModelOperation, OperationType, ResponseShape


def test_operation_from_name():
    assert operation_from_name("listUsers") is OperationType.INDEX
    assert operation_from_name("findBySlug") is OperationType.SHOW
    assert operation_from_name("saveDraft") is OperationType.STORE
    assert operation_from_name("patchProfile") is OperationType.UPDATE
    assert operation_from_name("removeAvatar") is OperationType.DESTROY
    assert operation_from_name("scassa") is OperationType.NONE


def test_model_intent_beats_method_name():
    analysis = MethodAnalysis(
        name="index",
        model_operations=[
            ModelOperation(model="App\\Models\\Post", operation="findOrFail", intent=OperationType.SHOW),
            ModelOperation(model="App\\Models\\Post", operation="delete", intent=OperationType.DESTROY),
        ],
    )
    assert operation_type(analysis) is OperationType.DESTROY


def test_paginated_index_example(post_analyses):
    index = post_analyses["index"]
    response = index.responses[0]
    assert response.operation_type is ResponseShape.PAGINATED
    assert response.example["meta"]["per_page"] == 20
    item = response.example["data"][0]
    assert item["id"] == 1
    assert item["comments"] == [{"id": 1}]
    assert index.api_resource.name == "App\\Http\\Resources\\PostResource"
    assert index.api_resource.model == "App\\Models\\Post"
    assert index.api_resource.is_collection is True


def test_resource_example(post_analyses):
    show = post_analyses["show"]
    assert show.responses[0].operation_type is ResponseShape.RESOURCE
    data = show.responses[0].example["data"]
    assert data["id"] == 1
    assert isinstance(data["is_published"], bool)
    assert show.default_example == show.responses[0].example


def test_explicit_response_keeps_structure(post_analyses):
    store = post_analyses["store"]
    example = store.responses[0].example
    assert example["message"] == "Post created"
    assert example["data"]["id"] == 1
    assert store.default_example == example


def test_literal_response_example(session):
    source = r'''<?php

namespace App\Http\Controllers;

class TokenController extends Controller
{
    public function store()
    {
        return response()->json(['id' => 1], 201);
    }
}
'''
    store = session.analyze(source)["store"]
    assert len(store.responses) == 1
    assert store.responses[0].content == {"id": 1}
    assert store.responses[0].example == {"id": 1}


def test_destroy_has_no_default_example(post_analyses):
    assert post_analyses["destroy"].default_example is None
    assert post_analyses["destroy"].responses[0].example is None


def test_body_params_get_examples(post_analyses):
    params = post_analyses["store"].body_params
    assert all(param.example is not None for param in params.values())
    assert len(params["title"].example) <= 255


def test_dynamic_fields_propagate_from_helpers(session, report_controller):
    show = session.analyze(report_controller)["show"]
    assert [f.field for f in show.body.operations.dynamic_fields] == ["score_total"]
    assert isinstance(show.responses[0].example["score_total"], int)


def test_bound_parameters_annotated(post_analyses):
    params = {p.name: p for p in post_analyses["store"].parameters}
    assert params["request"].form_request == "App\\Http\\Requests\\StorePostRequest"
    post = {p.name: p for p in post_analyses["show"].parameters}["post"]
    assert post.model_class == "App\\Models\\Post"


CHAIN_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Models\Report;

class ChainController extends Controller
{
    public function third(Report $report)
    {
        $report->c_field = 3;

        return $report;
    }

    public function second(Report $report)
    {
        $this->third($report);
        $report->b_field = 2;

        return $report;
    }

    public function first(Report $report)
    {
        $this->second($report);

        return $report;
    }
}
'''


def test_propagation_is_one_hop_regardless_of_order(schemas, class_index):
    session = AnalysisSession(Settings(include_simple_methods=True), schemas, class_index)
    analyses = session.analyze(CHAIN_CONTROLLER)

    def fields(name):
        return [f.field for f in analyses[name].body.operations.dynamic_fields]

    assert fields("third") == ["c_field"]
    assert fields("second") == ["b_field", "c_field"]
    assert fields("first") == ["b_field"]


VOTE_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use Illuminate\Http\Request;

class VoteController extends Controller
{
    public function store(Request $request)
    {
        $request->validate([
            'country_id' => 'required|exists:countries,id',
            'candidate_id' => 'required|integer',
        ]);

        return response()->json(['ok' => true], 201);
    }
}
'''


def test_integer_body_params_get_integer_examples(session):
    store = session.analyze(VOTE_CONTROLLER)["store"]
    assert isinstance(store.body_params["country_id"].example, int)
    assert isinstance(store.body_params["candidate_id"].example, int)
    doc = session.render(store)
    assert "@bodyParam candidate_id integer required The candidate id. Example: " in doc


STATS_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Http\Resources\StatsResource;

class StatsController extends Controller
{
    public function index()
    {
        return new StatsResource(['total' => 1]);
    }
}
'''


def test_resource_model_requires_a_known_class(session):
    index = session.analyze(STATS_CONTROLLER)["index"]
    assert index.api_resource.name == "App\\Http\\Resources\\StatsResource"
    assert index.api_resource.model is None
    assert "@apiResourceModel" not in session.render(index)

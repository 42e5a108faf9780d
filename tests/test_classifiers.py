"""
Tests for the operation classifiers, run through a full analysis.
"""

import pytest

from routescribe.core.classifier_engine import CLASSIFIER_REGISTRY, ClassifierEngine, merge_partial
from routescribe.core.engine import AnalysisSession
from routescribe.core.schema import StaticSchemaProvider
from routescribe.models.analysis_models import MethodAnalysis, OperationType, PaginationInfo
from routescribe.models.schema_models import ModelSchema


ORDER_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Exceptions\OrderLockedException;
use App\Models\Order;
use Illuminate\Auth\Access\AuthorizationException;
use Illuminate\Http\Request;
use Illuminate\Support\Facades\Gate;

class OrderController extends Controller
{
    public static function middleware(): array
    {
        return ['auth:api', 'throttle:api'];
    }

    public function show($id)
    {
        $order = Order::with('items')->findOrFail($id);
        if (! Gate::allows('view', $order)) {
            throw new AuthorizationException('Not your order.');
        }

        return response()->json(['data' => $order]);
    }

    public function cancel(Request $request, $id)
    {
        abort_if($request->user() === null, 401, 'Login first.');
        $order = Order::find($id);
        if ($order->locked) {
            throw new OrderLockedException('Order is locked.');
        }
        $order->status = 'cancelled';
        $order->save();

        return response()->json(['message' => 'Cancelled'], 202);
    }

    public function listOpen(Request $request)
    {
        $this->validate($request, [
            'q' => 'required|string|min:2',
            'page' => 'integer|min:1',
        ]);

        return Order::where('status', 'open')->get();
    }
}
'''


@pytest.fixture
def orders():
    provider = StaticSchemaProvider({"App\\Models\\Order": ModelSchema(table="orders", fillable=["status", "total"])})
    return AnalysisSession(schema_provider=provider)


def test_registry_has_every_classifier():
    assert set(CLASSIFIER_REGISTRY) == {
        "database", "cache", "jobs", "authorization", "exceptions", "inline_validation",
        "form_request", "middleware", "models", "responses", "routing",
    }


def test_failing_classifier_is_recorded(session, post_controller):
    def broken(ctx, method):
        raise RuntimeError("boom")

    session.classifiers = ClassifierEngine({"broken": broken, **CLASSIFIER_REGISTRY})
    analysis = session.analyze(post_controller, "store")["store"]
    assert analysis.errors == ["broken: RuntimeError: boom"]
    # The other classifiers still ran
    assert analysis.form_requests


def test_merge_partial_unions_lists_and_keeps_first_section():
    analysis = MethodAnalysis(name="index", cache_operations=["get"])
    merge_partial(analysis, {"cache_operations": ["get", "put"]})
    assert analysis.cache_operations == ["get", "put"]

    merge_partial(analysis, {"pagination": PaginationInfo(has_pagination=True, per_page=10)})
    merge_partial(analysis, {"pagination": PaginationInfo(has_pagination=True, per_page=50)})
    assert analysis.pagination.per_page == 10


# ── Models ──


def test_paginate_detected(post_analyses):
    index = post_analyses["index"]
    assert index.operation_type is OperationType.INDEX
    assert index.pagination.has_pagination is True
    assert index.pagination.method == "paginate"
    assert index.pagination.per_page == 20
    assert "App\\Models\\Post" in index.models


def test_model_operations_set_intent(post_analyses):
    assert post_analyses["store"].operation_type is OperationType.STORE
    assert post_analyses["store"].creates_model == "App\\Models\\Post"
    assert post_analyses["update"].operation_type is OperationType.UPDATE
    assert post_analyses["destroy"].operation_type is OperationType.DESTROY
    assert post_analyses["destroy"].deletes_model == "App\\Models\\Post"


def test_name_fallback_when_no_intent(post_analyses):
    # load() carries no intent
    assert post_analyses["show"].operation_type is OperationType.SHOW


def test_delete_call_decides_destroy(session, post_controller):
    scassa = session.analyze(post_controller, "scassa")["scassa"]
    assert scassa.operation_type is OperationType.DESTROY


def test_strongest_intent_wins(orders):
    analysis = orders.analyze(ORDER_CONTROLLER, "cancel")["cancel"]
    intents = {op.intent for op in analysis.model_operations}
    assert {OperationType.SHOW, OperationType.UPDATE} <= intents
    assert analysis.operation_type is OperationType.UPDATE


# ── Responses and exceptions ──


def test_explicit_json_response(post_analyses):
    responses = post_analyses["store"].responses
    assert len(responses) == 1
    assert responses[0].status == 201
    assert responses[0].message == "Post created"


def test_no_content_response(post_analyses):
    assert [r.status for r in post_analyses["destroy"].responses] == [204]


def test_thrown_and_implicit_exceptions(orders):
    show = orders.analyze(ORDER_CONTROLLER)["show"]
    by_status = {e.status: e for e in show.exceptions}
    assert set(by_status) == {403, 404}
    assert by_status[403].message == "Not your order."
    assert by_status[404].exception == "Illuminate\\Database\\Eloquent\\ModelNotFoundException"


def test_abort_and_unmapped_exception(orders):
    cancel = orders.analyze(ORDER_CONTROLLER, "cancel")["cancel"]
    by_status = {e.status: e for e in cancel.exceptions}
    assert by_status[401].message == "Login first."
    assert by_status[400].exception == "App\\Exceptions\\OrderLockedException"


# ── Authorization and middleware ──


def test_gate_check_requires_authorization(orders):
    show = orders.analyze(ORDER_CONTROLLER)["show"]
    assert show.authorization.required is True
    assert show.authorization.calls == ["Gate::allows"]


def test_policy_authorize(post_analyses):
    assert post_analyses["update"].authorization.calls == ["authorize"]
    assert post_analyses["store"].authorization.required is False


def test_constructor_middleware_filters(post_analyses):
    assert post_analyses["index"].middleware.requires_auth is False
    store = post_analyses["store"]
    assert store.middleware.requires_auth is True
    assert store.middleware.auth_guard == "sanctum"
    assert store.rate_limiting.max_attempts == 60
    assert store.rate_limiting.decay_minutes == 1
    entry = store.middleware.controller_middleware[0]
    assert entry.except_ == ["index"]


def test_static_middleware_declaration(orders):
    show = orders.analyze(ORDER_CONTROLLER)["show"]
    assert show.middleware.auth_guard == "api"
    assert show.rate_limiting.enabled is True
    assert show.rate_limiting.max_attempts == "api"


# ── Validation ──


def test_form_request_rules(post_analyses):
    store = post_analyses["store"]
    info = store.form_requests["App\\Http\\Requests\\StorePostRequest"]
    assert info.authorize is True
    assert list(store.body_params) == ["title", "body", "published_at"]
    assert store.body_params["body"].required is True
    assert store.body_params["published_at"].type == "datetime"
    assert store.validation_rules["body"] == ["required", "string", "min:10"]


def test_inline_validation(post_analyses):
    update = post_analyses["update"]
    assert update.body_params["title"].description == "The title (max: 255)."
    role = update.body_params["role_id"]
    assert role.type == "integer"
    assert role.required is False
    assert "must exist in roles" in role.description
    assert update.body_params["tags"].type == "array"


def test_controller_validate_on_list_is_query(orders):
    listing = orders.analyze(ORDER_CONTROLLER, "listOpen")["listOpen"]
    assert set(listing.query_params) == {"q", "page"}
    assert listing.body_params == {}
    assert listing.query_params["page"].type == "integer"


# ── Side operations ──


def test_store_side_operations(post_analyses):
    store = post_analyses["store"]
    assert "database_transaction" in store.database_operations
    assert store.job_operations == ["PublishPostJob"]
    assert "forget" in store.cache_operations


# ── Routing ──


def test_bound_model_becomes_url_param(post_analyses):
    param = post_analyses["show"].url_params["post"]
    assert param.type == "integer"
    assert param.required is True
    assert param.description == "The ID of the post."

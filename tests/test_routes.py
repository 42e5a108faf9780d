"""
Tests for the static route table read from route files.
"""

import pytest

from routescribe.core.engine import AnalysisSession
from routescribe.core.routes import NullRouteTable, RouteEntry, StaticRouteTable


API_ROUTES = r'''<?php

use App\Http\Controllers\PostController;
use App\Http\Controllers\TagController;
use Illuminate\Support\Facades\Route;

Route::middleware('auth:sanctum')->group(function () {
    Route::apiResource('posts', PostController::class)->only(['index', 'show']);
    Route::post('posts/{post}/publish', [PostController::class, 'publish'])->middleware('throttle:10,1');
});

Route::prefix('v2')->controller(TagController::class)->group(function () {
    Route::get('tags/{tag?}', 'index');
});

Route::get('health', 'App\Http\Controllers\HealthController@check');
'''

WEB_ROUTES = r'''<?php

use App\Http\Controllers\PostController;
use Illuminate\Support\Facades\Route;

Route::resource('admin/posts', PostController::class)->except(['destroy']);
'''

POST_INDEX_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Http\Requests\StorePostRequest;

class PostController extends Controller
{
    public function index(StorePostRequest $request)
    {
        return [];
    }

    public function publish(int $post)
    {
        return [];
    }
}
'''


@pytest.fixture
def routes():
    return StaticRouteTable.from_sources({"routes/api.php": API_ROUTES})


def test_api_resource_only(routes):
    show = routes.lookup("App\\Http\\Controllers\\PostController", "show")
    assert show == RouteEntry(["GET", "HEAD"], "api/posts/{post}", ["auth:sanctum"])
    assert routes.lookup("App\\Http\\Controllers\\PostController", "store") is None


def test_group_and_chained_middleware(routes):
    publish = routes.lookup("App\\Http\\Controllers\\PostController", "publish")
    assert publish.methods == ["POST"]
    assert publish.uri == "api/posts/{post}/publish"
    assert publish.middleware == ["auth:sanctum", "throttle:10,1"]


def test_controller_group_with_prefix(routes):
    tags = routes.lookup("App\\Http\\Controllers\\TagController", "index")
    assert tags.uri == "api/v2/tags/{tag?}"
    assert tags.placeholders() == [("tag", True)]


def test_string_action(routes):
    health = routes.lookup("App\\Http\\Controllers\\HealthController", "check")
    assert health.uri == "api/health"
    assert health.middleware == []


def test_lookup_by_short_name(routes):
    assert routes.lookup("PostController", "show") is not None
    assert routes.lookup("\\app\\http\\controllers\\postcontroller", "SHOW") is not None


def test_web_resource_except():
    table = StaticRouteTable.from_sources({"routes/web.php": WEB_ROUTES})
    controller = "App\\Http\\Controllers\\PostController"
    assert table.lookup(controller, "destroy") is None
    edit = table.lookup(controller, "edit")
    assert edit.uri == "admin/posts/{post}/edit"
    assert table.lookup(controller, "update").methods == ["PUT", "PATCH"]


def test_unparseable_route_file_is_skipped():
    table = StaticRouteTable.from_sources({"routes/api.php": API_ROUTES, "routes/broken.php": "<?php Route::get("})
    assert len(table) > 0


def test_null_table():
    assert NullRouteTable().lookup("App\\Http\\Controllers\\PostController", "show") is None


def test_route_verbs_decide_query_params(settings, schemas, class_index, routes):
    session = AnalysisSession(settings=settings, schema_provider=schemas, class_index=class_index, route_table=routes)
    analyses = session.analyze(POST_INDEX_CONTROLLER, "index")
    index = analyses["index"]
    assert index.route.methods == ["GET", "HEAD"]
    assert set(index.query_params) == {"title", "body", "published_at"}
    assert index.body_params == {}


def test_route_placeholders_become_url_params(settings, schemas, class_index, routes):
    session = AnalysisSession(settings=settings, schema_provider=schemas, class_index=class_index, route_table=routes)
    publish = session.analyze(POST_INDEX_CONTROLLER, "publish")["publish"]
    assert list(publish.url_params) == ["post"]
    assert publish.url_params["post"].type == "string"
    assert publish.middleware.route_middleware == ["auth:sanctum", "throttle:10,1"]
    assert publish.rate_limiting.max_attempts == 10

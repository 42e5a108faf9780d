"""
Test fixtures shared across all RouteScribe tests.
"""

import pytest

from routescribe.config import Settings
from routescribe.core.class_index import ClassIndex
from routescribe.core.engine import AnalysisSession
from routescribe.core.schema import StaticSchemaProvider
from routescribe.models.schema_models import ModelSchema, RelationInfo


POST_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Http\Requests\StorePostRequest;
use App\Http\Resources\PostResource;
use App\Jobs\PublishPostJob;
use App\Models\Post;
use Illuminate\Http\Request;
use Illuminate\Support\Facades\Cache;
use Illuminate\Support\Facades\DB;

class PostController extends Controller
{
    public function __construct()
    {
        $this->middleware('auth:sanctum')->except(['index']);
        $this->middleware('throttle:60,1');
    }

    public function index()
    {
        $posts = Post::with('author')->paginate(20);

        return PostResource::collection($posts);
    }

    public function show(Post $post)
    {
        $post->load('comments');

        return new PostResource($post);
    }

    public function store(StorePostRequest $request)
    {
        $post = DB::transaction(function () use ($request) {
            return Post::create($request->validated());
        });
        PublishPostJob::dispatch($post);
        Cache::forget('posts');

        return response()->json(['message' => 'Post created', 'data' => $post], 201);
    }

    public function update(Request $request, Post $post)
    {
        $this->authorize('update', $post);

        $validated = $request->validate([
            'title' => 'required|string|max:255',
            'role_id' => 'nullable|exists:roles,id',
            'tags' => 'array',
        ]);

        $post->update($validated);

        return response()->json(['message' => 'Post updated', 'data' => $post]);
    }

    public function destroy(Post $post)
    {
        $post->delete();

        return response()->noContent();
    }

    public function scassa(Post $model)
    {
        $model->delete();

        return response()->json(null, 204);
    }

    private function helper()
    {
        return true;
    }
}
'''

STORE_POST_REQUEST = r'''<?php

namespace App\Http\Requests;

use Illuminate\Foundation\Http\FormRequest;

class StorePostRequest extends FormRequest
{
    public function authorize(): bool
    {
        return true;
    }

    public function rules(): array
    {
        return [
            'title' => 'required|string|max:255',
            'body' => ['required', 'string', 'min:10'],
            'published_at' => 'nullable|date',
        ];
    }
}
'''

POST_RESOURCE = r'''<?php

namespace App\Http\Resources;

use Illuminate\Http\Resources\Json\JsonResource;

class PostResource extends JsonResource
{
    public function toArray($request): array
    {
        return [
            'id' => $this->id,
            'title' => $this->title,
            'is_published' => (bool) $this->published,
            'comments' => CommentResource::collection($this->whenLoaded('comments')),
            'created_at' => $this->created_at,
        ];
    }
}
'''

REPORT_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Models\Report;

class ReportController extends Controller
{
    public function show(Report $report)
    {
        $this->decorate($report);

        return $report;
    }

    private function decorate(Report $report)
    {
        $report->score_total = 42;
    }
}
'''

METRICS_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

class MetricsController extends Controller
{
    public function flat()
    {
        return 1;
    }

    public function branch($a)
    {
        if ($a) {
            return 1;
        }
        return 2;
    }

    public function both($a, $b)
    {
        if ($a && $b) {
            return 1;
        }
        return 2;
    }

    public function busy(array $items)
    {
        $total = 0;
        foreach ($items as $item) {
            if ($item > 10 || $item < 0) {
                continue;
            } elseif ($item === 5) {
                $total += 2;
            }
            $total += $item;
        }
        try {
            return $total;
        } catch (\Exception $e) {
            return 0;
        }
    }
}
'''


@pytest.fixture
def post_controller():
    return POST_CONTROLLER


@pytest.fixture
def report_controller():
    return REPORT_CONTROLLER


@pytest.fixture
def metrics_controller():
    return METRICS_CONTROLLER


@pytest.fixture
def schemas():
    """Static model schemas for the fixture controllers."""
    return StaticSchemaProvider({
        "App\\Models\\Post": ModelSchema(
            table="posts",
            fillable=["title", "body", "user_id", "published_at"],
            casts={"published_at": "datetime"},
            relations={
                "author": RelationInfo(type="BelongsTo", related="App\\Models\\User", foreign_key="user_id"),
                "comments": RelationInfo(type="HasMany", related="App\\Models\\Comment", foreign_key="post_id"),
            },
        ),
        "App\\Models\\User": ModelSchema(table="users", fillable=["name", "email", "password"]),
        "App\\Models\\Comment": ModelSchema(table="comments", fillable=["body", "post_id"]),
        "App\\Models\\Report": ModelSchema(table="reports", fillable=["name"]),
    })


@pytest.fixture
def class_index():
    return ClassIndex.from_sources({
        "app/Http/Requests/StorePostRequest.php": STORE_POST_REQUEST,
        "app/Http/Resources/PostResource.php": POST_RESOURCE,
    })


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def session(settings, schemas, class_index):
    return AnalysisSession(settings=settings, schema_provider=schemas, class_index=class_index)


@pytest.fixture
def post_analyses(session, post_controller):
    return session.analyze(post_controller, path="app/Http/Controllers/PostController.php")

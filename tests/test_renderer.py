"""
Tests for doc block rendering and smart completion of existing blocks.
"""

import pytest

from routescribe.config import Settings
from routescribe.core.renderer import CommentRenderer


@pytest.fixture
def docs(session, post_analyses):
    return {name: session.render(analysis) for name, analysis in post_analyses.items()}


def lines_of(doc):
    return doc.splitlines()


def json_response(lines, status):
    """True when `@response <status>` is followed by a JSON body on the next lines."""
    if f" * @response {status}" not in lines:
        return False
    return lines[lines.index(f" * @response {status}") + 1] == " * {"


def test_block_delimiters(docs):
    for doc in docs.values():
        lines = lines_of(doc)
        assert lines[0] == "/**"
        assert lines[-1] == " */"
        assert all(line.startswith(" *") for line in lines[1:])


def test_crud_titles(docs):
    assert lines_of(docs["index"])[1] == " * List all resources"
    assert lines_of(docs["store"])[1] == " * Store a newly created resource in storage"
    assert lines_of(docs["destroy"])[1] == " * Remove the specified resource from storage"


def test_description_names_models(docs):
    assert " * Creates a new resource with validated data. Works with Post models." in lines_of(docs["store"])


def test_store_block(docs):
    doc = docs["store"]
    lines = lines_of(doc)
    assert any(line.startswith(" * @bodyParam title string required The title (max: 255). Example: ") for line in lines)
    assert any(line.startswith(" * @bodyParam published_at datetime optional The published at (valid date).") for line in lines)
    assert json_response(lines, 201)
    assert '"message": "Post created",' in doc
    assert " * @authenticated" in lines
    assert " * @header Authorization Bearer {token} (Guard: sanctum)" in lines
    assert " * @group Post" in lines


def test_store_notes(docs):
    lines = lines_of(docs["store"])
    assert " * ⚠️ This operation is executed within a database transaction with automatic rollback on failure." in lines
    assert " * 🔄 1 asynchronous background job is dispatched." in lines
    assert " * 💾 Cache operations: forget." in lines


def test_validation_block(docs):
    doc = docs["update"]
    assert json_response(lines_of(doc), 422)
    assert '"message": "The given data was invalid.",' in doc
    assert '"The title field is required."' in doc
    assert '"The selected role id is invalid."' in doc
    assert '"The tags must be an array."' in doc


def test_authorization_error(docs):
    assert ' * @response 403 {"message": "This action is unauthorized."}' in lines_of(docs["update"])
    assert "@response 403" not in docs["store"]


def test_rate_limit(docs):
    lines = lines_of(docs["index"])
    assert ' * @response 429 {"message": "Too many requests"}' in lines
    assert " * ⏱️ Rate limited to 60 requests per 1 minutes." in lines


def test_index_block(docs):
    lines = lines_of(docs["index"])
    assert " * @authenticated" not in lines
    assert " * 📄 Results are paginated using paginate (per page: 20)." in lines
    assert " * @apiResource App\\Http\\Resources\\PostResource" in lines
    assert " * @apiResourceModel App\\Models\\Post" in lines
    assert '"per_page": 20,' in docs["index"]


def test_url_params(docs):
    assert " * @urlParam post integer required The ID of the post. Example: 1" in lines_of(docs["show"])


def test_no_content_is_bare(session, post_controller, docs):
    for doc in (docs["destroy"], session.render(session.analyze(post_controller, "scassa")["scassa"])):
        lines = lines_of(doc)
        position = lines.index(" * @response 204")
        assert "{" not in lines[position + 1]


def test_rendering_is_idempotent(session, post_analyses, docs):
    for name, analysis in post_analyses.items():
        assert session.render(analysis, docs[name]) == docs[name], name


def test_smart_merge_keeps_documented_entries(session, post_analyses):
    existing = """/**
 * Create a post
 *
 * Custom description.
 *
 * @bodyParam title string required Custom headline. Example: Hello
 * @response 500 {"message": "Boom"}
 * @subgroup Drafts
 */"""
    doc = session.render(post_analyses["store"], existing)
    lines = lines_of(doc)
    assert lines[1] == " * Create a post"
    assert " * Custom description." in lines
    assert " * @bodyParam title string required Custom headline. Example: Hello" in lines
    assert any(line.startswith(" * @bodyParam body string required") for line in lines)
    assert ' * @response 500 {"message": "Boom"}' in lines
    assert lines[-2] == " * @subgroup Drafts"
    # Generated sections are still completed
    assert json_response(lines, 201)


def test_overwrite_ignores_existing(session, post_analyses):
    existing = "/**\n * Create a post\n *\n * @subgroup Drafts\n */"
    doc = session.render(post_analyses["store"], existing, "overwrite")
    assert lines_of(doc)[1] == " * Store a newly created resource in storage"
    assert "@subgroup" not in doc


def test_feature_flags(post_analyses):
    renderer = CommentRenderer(Settings(feature_rate_limit_info=False, feature_implementation_notes=False))
    doc = renderer.render(post_analyses["store"])
    assert "@response 429" not in doc
    assert "🔄" not in doc


def test_namespace_group_strategy(post_analyses):
    renderer = CommentRenderer(Settings(group_strategy="namespace"))
    assert " * @group Controllers" in lines_of(renderer.render(post_analyses["show"]))


ATTRIBUTED_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Http\Requests\StorePostRequest;
use App\Models\Post;
use Knuckles\Scribe\Attributes\BodyParam;
use Knuckles\Scribe\Attributes\Group;
use Knuckles\Scribe\Attributes\Response;
use Knuckles\Scribe\Attributes\Unauthenticated;

class DraftController extends Controller
{
    #[Group('Drafts')]
    #[BodyParam('title', 'string', 'Headline of the draft.')]
    #[Response(['id' => 1], status: 201)]
    #[Unauthenticated]
    public function store(StorePostRequest $request)
    {
        abort_unless(auth()->check(), 401);

        $post = Post::create($request->validated());

        return response()->json(['data' => $post], 201);
    }
}
'''


def test_attributes_are_not_duplicated(session):
    store = session.analyze(ATTRIBUTED_CONTROLLER)["store"]
    for strategy in ("smart", "overwrite"):
        doc = session.render(store, merge_strategy=strategy)
        lines = lines_of(doc)
        assert not any(line.startswith(" * @bodyParam title ") for line in lines)
        assert any(line.startswith(" * @bodyParam body string required") for line in lines)
        assert "@response 201" not in doc
        assert "@response 200" not in doc
        assert "@group" not in doc
        assert "@authenticated" not in doc
        assert "@header Authorization" not in doc
        assert "@response 401" in doc


def test_attributes_keep_rendering_idempotent(session):
    store = session.analyze(ATTRIBUTED_CONTROLLER)["store"]
    doc = session.render(store)
    assert session.render(store, doc) == doc

"""
Tests for model schema providers, migration columns and the schema cache.
"""

import pytest

from routescribe.cache.class_cache import ClassCache
from routescribe.core.class_index import ClassIndex
from routescribe.core.engine import AnalysisSession
from routescribe.core.migrations import read_migrations
from routescribe.core.schema import (
    CachedSchemaResolver,
    ConventionSchemaProvider,
    NullSchemaProvider,
    SourceSchemaProvider,
    StaticSchemaProvider,
)
from routescribe.models.schema_models import ModelSchema


POST_MODEL = r'''<?php

namespace App\Models;

use Illuminate\Database\Eloquent\Model;
use Illuminate\Database\Eloquent\Relations\HasMany;

class Post extends Model
{
    protected $fillable = ['title', 'body', 'user_id'];

    protected $hidden = ['secret'];

    protected $casts = [
        'published_at' => 'datetime',
        'meta' => 'array',
        'price' => 'decimal:2',
    ];

    public function author()
    {
        return $this->belongsTo(User::class, 'user_id');
    }

    public function comments(): HasMany
    {
        return $this->hasMany(Comment::class);
    }

    public function scopePublished($query)
    {
        return $query->whereNotNull('published_at');
    }
}
'''

DRAFT_MODEL = r'''<?php

namespace App\Models;

class Draft extends Post
{
    protected $table = 'post_drafts';
}
'''

POSTS_MIGRATION = r'''<?php

use Illuminate\Database\Migrations\Migration;
use Illuminate\Database\Schema\Blueprint;
use Illuminate\Support\Facades\Schema;

return new class extends Migration
{
    public function up(): void
    {
        Schema::create('posts', function (Blueprint $table) {
            $table->id();
            $table->string('title');
            $table->text('body')->nullable();
            $table->foreignId('user_id');
            $table->timestamps();
        });
    }

    public function down(): void
    {
        Schema::dropIfExists('posts');
    }
};
'''

ADD_STATUS_MIGRATION = r'''<?php

use Illuminate\Database\Migrations\Migration;
use Illuminate\Database\Schema\Blueprint;
use Illuminate\Support\Facades\Schema;

return new class extends Migration
{
    public function up(): void
    {
        Schema::table('posts', function (Blueprint $table) {
            $table->boolean('is_featured');
            $table->dropColumn('body');
        });
    }

    public function down(): void
    {
        Schema::table('posts', function (Blueprint $table) {
            $table->text('body')->nullable();
        });
    }
};
'''

ROUTES = r'''<?php

use App\Http\Controllers\PostController;
use Illuminate\Support\Facades\Route;

Route::get('posts/{post}', [PostController::class, 'show'])->middleware('auth:sanctum');
'''

CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use App\Models\Post;

class PostController extends Controller
{
    public function show(Post $post)
    {
        return $post;
    }
}
'''


@pytest.fixture
def project(tmp_path):
    """A minimal Laravel checkout on disk."""
    models = tmp_path / "app" / "Models"
    models.mkdir(parents=True)
    (models / "Post.php").write_text(POST_MODEL)
    (models / "Draft.php").write_text(DRAFT_MODEL)

    controllers = tmp_path / "app" / "Http" / "Controllers"
    controllers.mkdir(parents=True)
    (controllers / "PostController.php").write_text(CONTROLLER)

    migrations = tmp_path / "database" / "migrations"
    migrations.mkdir(parents=True)
    (migrations / "2024_01_01_000000_create_posts_table.php").write_text(POSTS_MIGRATION)
    (migrations / "2024_02_01_000000_add_featured_to_posts.php").write_text(ADD_STATUS_MIGRATION)

    routes = tmp_path / "routes"
    routes.mkdir()
    (routes / "api.php").write_text(ROUTES)

    vendor = tmp_path / "vendor" / "laravel"
    vendor.mkdir(parents=True)
    (vendor / "Broken.php").write_text("<?php class {")
    return tmp_path


# ── Providers ──


def test_static_provider_is_case_insensitive():
    provider = StaticSchemaProvider({"App\\Models\\Post": ModelSchema(fillable=["title"])})
    assert provider.is_model("\\app\\models\\post")
    schema = provider.resolve("App\\Models\\Post")
    assert schema.class_name == "App\\Models\\Post"
    assert schema.fillable == ["title"]
    assert provider.resolve("App\\Models\\Missing").is_empty


def test_null_provider():
    provider = NullSchemaProvider()
    assert not provider.is_model("App\\Models\\Post")
    assert provider.resolve("App\\Models\\Post") == ModelSchema(class_name="App\\Models\\Post")


def test_convention_provider():
    provider = ConventionSchemaProvider(["App\\Models\\"])
    assert provider.is_model("App\\Models\\BlogPost")
    assert not provider.is_model("App\\Models\\PostResource")
    assert not provider.is_model("App\\Models\\Cache")
    assert not provider.is_model("App\\Http\\Post")
    assert provider.resolve("App\\Models\\BlogPost").table == "blog_posts"


def test_source_provider_reads_model_declarations():
    index = ClassIndex.from_sources({"app/Models/Post.php": POST_MODEL, "app/Models/Draft.php": DRAFT_MODEL})
    provider = SourceSchemaProvider(index)

    assert provider.is_model("App\\Models\\Post")
    assert provider.is_model("App\\Models\\Draft")
    assert not provider.is_model("App\\Models\\Comment")

    schema = provider.resolve("App\\Models\\Post")
    assert schema.table == "posts"
    assert schema.fillable == ["title", "body", "user_id"]
    assert schema.hidden == ["secret"]
    assert schema.casts == {"published_at": "datetime", "meta": "array", "price": "decimal"}
    assert set(schema.relations) == {"author", "comments"}


def test_source_provider_relations():
    index = ClassIndex.from_sources({"app/Models/Post.php": POST_MODEL})
    relations = SourceSchemaProvider(index).resolve("App\\Models\\Post").relations

    author = relations["author"]
    assert author.type == "BelongsTo"
    assert author.related == "App\\Models\\User"
    assert author.foreign_key == "user_id"
    assert not author.is_many

    comments = relations["comments"]
    assert comments.type == "HasMany"
    assert comments.related == "App\\Models\\Comment"
    assert comments.foreign_key == "post_id"
    assert comments.is_many


def test_source_provider_inherits_properties():
    index = ClassIndex.from_sources({"app/Models/Post.php": POST_MODEL, "app/Models/Draft.php": DRAFT_MODEL})
    draft = SourceSchemaProvider(index).resolve("App\\Models\\Draft")
    assert draft.table == "post_drafts"
    assert draft.fillable == ["title", "body", "user_id"]
    assert "comments" in draft.relations


# ── Migrations ──


def test_migrations_replayed_in_order(project):
    tables = read_migrations(project)
    columns = tables["posts"]
    assert columns["id"].type == "bigint"
    assert columns["title"].type == "string"
    assert columns["user_id"].type == "bigint"
    assert columns["created_at"].type == "datetime"
    assert columns["is_featured"].type == "boolean"
    # Dropped by the second migration; its down() is not replayed
    assert "body" not in columns


def test_missing_migrations_directory(tmp_path):
    assert read_migrations(tmp_path) == {}


# ── Cache ──


def test_cached_resolver_computes_once():
    calls = []

    class CountingProvider(StaticSchemaProvider):
        def resolve(self, fqcn):
            calls.append(fqcn)
            return super().resolve(fqcn)

    provider = CountingProvider({"App\\Models\\Post": ModelSchema(fillable=["title"])})
    cache = ClassCache("model_schemas")
    resolver = CachedSchemaResolver(provider, cache)

    first = resolver.resolve("App\\Models\\Post")
    second = resolver.resolve("\\App\\Models\\Post")
    assert first is second
    assert calls == ["App\\Models\\Post"]
    assert cache.stats()["hits"] == 1


def test_cached_resolver_degrades_on_failure():
    class BrokenProvider:
        def is_model(self, fqcn):
            raise RuntimeError("no reflection")

        def resolve(self, fqcn):
            raise RuntimeError("no reflection")

    resolver = CachedSchemaResolver(BrokenProvider(), ClassCache("model_schemas"))
    assert resolver.is_model("App\\Models\\Post") is False
    schema = resolver.resolve("App\\Models\\Post")
    assert schema.class_name == "App\\Models\\Post"
    assert schema.is_empty


# ── Project sessions ──


def test_project_session(project):
    session = AnalysisSession.for_project(project)
    assert "App\\Models\\Post" in session.index
    assert session.provider.resolve("App\\Models\\Post").columns["is_featured"].type == "boolean"

    source = (project / "app" / "Http" / "Controllers" / "PostController.php").read_text()
    show = session.analyze(source)["show"]
    assert show.route.uri == "api/posts/{post}"
    assert show.middleware.requires_auth is True
    assert show.url_params["post"].description == "The ID of the post."
    assert "is_featured" in show.responses[0].example

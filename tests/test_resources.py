"""
Tests for API resource shape resolution.
"""

import pytest

from routescribe.cache.class_cache import ClassCache
from routescribe.core.class_index import ClassIndex
from routescribe.core.resources import ResourceShapeResolver, is_resource_name, type_from_property_name


RESOURCES = r'''<?php

namespace App\Http\Resources;

use Illuminate\Http\Resources\Json\JsonResource;
use Illuminate\Http\Resources\Json\ResourceCollection;

class UserResource extends JsonResource
{
    public function toArray($request): array
    {
        return [
            'id' => $this->id,
            'email' => $this->email,
            'is_admin' => (bool) $this->admin,
            'tags' => ['a', 'b'],
            'team' => new TeamResource($this->whenLoaded('team')),
            'posts_count' => $this->when($this->posts_count !== null, $this->posts_count),
            'avatar' => $this->whenLoaded('avatar'),
            'joined_at' => $this->created_at,
        ];
    }
}

class TeamResource extends JsonResource
{
    public function toArray($request): array
    {
        return [
            'id' => $this->id,
            'name' => $this->name,
            'owner' => new UserResource($this->owner),
        ];
    }
}

class UserCollection extends ResourceCollection
{
}
'''


@pytest.fixture
def index():
    return ClassIndex.from_sources({"app/Http/Resources/all.php": RESOURCES})


def resolver(index, depth=1):
    return ResourceShapeResolver(index, ClassCache("resource_shapes"), max_depth=depth)


def test_resource_detection(index):
    shapes = resolver(index)
    assert shapes.is_resource("App\\Http\\Resources\\UserResource")
    assert shapes.is_resource("App\\Http\\Resources\\UnindexedResource")
    assert shapes.is_resource("Illuminate\\Http\\Resources\\Json\\JsonResource")
    assert not shapes.is_resource("App\\Models\\User")
    assert is_resource_name("PostCollection")


def test_property_name_types():
    assert type_from_property_name("user_id") == "integer"
    assert type_from_property_name("published_at") == "datetime"
    assert type_from_property_name("has_children") == "boolean"
    assert type_from_property_name("total_price") == "float"
    assert type_from_property_name("title") == "mixed"


def test_fields_and_types(index):
    shape = resolver(index).shape("App\\Http\\Resources\\UserResource")
    fields = shape.fields
    assert fields["id"].type == "integer"
    assert fields["is_admin"].type == "boolean"
    assert fields["tags"].type == "array"
    assert fields["joined_at"].type == "datetime"
    assert fields["posts_count"].type == "integer"
    assert fields["posts_count"].conditional == "when"
    assert shape.resolved is True


def test_relations(index):
    shape = resolver(index).shape("App\\Http\\Resources\\UserResource")
    team = shape.relations["team"]
    assert team.resource == "App\\Http\\Resources\\TeamResource"
    assert team.is_collection is False
    avatar = shape.relations["avatar"]
    assert avatar.resource is None
    assert avatar.conditional is True


def test_nested_expansion_bounded_by_depth(index):
    shape = resolver(index, depth=1).expand("App\\Http\\Resources\\UserResource")
    team = shape.relations["team"].shape
    assert team is not None
    assert "name" in team.fields
    # One hop only
    assert team.relations["owner"].shape is None


def test_cycle_is_not_expanded(index):
    shape = resolver(index, depth=5).expand("App\\Http\\Resources\\UserResource")
    owner = shape.relations["team"].shape.relations["owner"]
    assert owner.resource == "App\\Http\\Resources\\UserResource"
    assert owner.shape is None


def test_collection_resource(index):
    shapes = resolver(index)
    assert shapes.shape("App\\Http\\Resources\\UserCollection").is_collection is True
    assert shapes.expand("App\\Http\\Resources\\UserResource", is_collection=True).is_collection is True


def test_unindexed_resource_is_unresolved(index):
    shape = resolver(index).shape("App\\Http\\Resources\\MissingResource")
    assert shape.resolved is False
    assert shape.fields == {}


def test_shapes_are_memoized(index):
    cache = ClassCache("resource_shapes")
    shapes = ResourceShapeResolver(index, cache)
    shapes.expand("App\\Http\\Resources\\UserResource")
    shapes.expand("App\\Http\\Resources\\UserResource")
    assert cache.size == 2
    assert cache.hits >= 1

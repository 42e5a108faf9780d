"""
Tests for reading existing doc comments.
"""

from routescribe.core.docblock import DocMetadata, apply_attributes, content_lines, parse_doc_block
from routescribe.core.unit import SourceUnit
from routescribe.models.analysis_models import MethodAttribute


EXISTING = '''/**
     * Create a post
     *
     * Stores the post and queues
     * the publishing job.
     *
     * 🔄 1 asynchronous background job is dispatched.
     *
     * @bodyParam title string required The headline. Example: Hello
     * @bodyParam body string required
     * @response 201 {
     *     "id": 1
     * }
     * @response 422 {"message": "Invalid"}
     * @authenticated
     * @group Blog
     * @subgroup Drafts
     */'''


def test_content_lines_strip_delimiters():
    lines = content_lines("/**\n * Title\n *\n *     indented\n */")
    assert lines == ["Title", "", "    indented"]


def test_title_and_description():
    meta = parse_doc_block(EXISTING)
    assert meta.title == "Create a post"
    assert meta.description == ["Stores the post and queues", "the publishing job."]


def test_params_by_name():
    meta = parse_doc_block(EXISTING)
    assert list(meta.body_params) == ["title", "body"]
    assert meta.body_params["title"].lines == ["@bodyParam title string required The headline. Example: Hello"]


def test_multiline_response_keeps_body():
    meta = parse_doc_block(EXISTING)
    created = meta.responses[201][0]
    assert created.lines == ["@response 201 {", '    "id": 1', "}"]
    assert meta.responses[422][0].argument == "422"


def test_flags_and_other_tags():
    meta = parse_doc_block(EXISTING)
    assert meta.authenticated is not None
    assert meta.group.lines == ["@group Blog"]
    assert [tag.name for tag in meta.other] == ["subgroup"]


def test_empty_and_missing():
    assert parse_doc_block(None).is_empty
    assert parse_doc_block("   ").is_empty
    assert parse_doc_block("/** */").is_empty


DRAFT_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

use Knuckles\Scribe\Attributes\BodyParam;
use Knuckles\Scribe\Attributes\Group;
use Knuckles\Scribe\Attributes\Response;

class DraftController extends Controller
{
    #[Group('Drafts'), BodyParam('title', 'string', required: true)]
    #[Response(['id' => 1], status: 201)]
    public function store()
    {
        return response()->json(['id' => 1], 201);
    }
}
'''


def test_method_attributes_are_read():
    unit = SourceUnit.parse(DRAFT_CONTROLLER, "DraftController.php")
    attributes = unit.primary_class().method("store").attributes
    assert [a.name for a in attributes] == [
        "Knuckles\\Scribe\\Attributes\\Group",
        "Knuckles\\Scribe\\Attributes\\BodyParam",
        "Knuckles\\Scribe\\Attributes\\Response",
    ]
    assert attributes[1].arguments == ["title", "string"]
    assert attributes[1].named_arguments == {"required": True}
    assert attributes[2].argument("status", 1) == 201


def test_attributes_mark_entries_documented():
    meta = apply_attributes(
        parse_doc_block(EXISTING),
        [
            MethodAttribute(name="Knuckles\\Scribe\\Attributes\\BodyParam", arguments=["title", "string"]),
            MethodAttribute(name="Knuckles\\Scribe\\Attributes\\QueryParam", named_arguments={"name": "page"}),
            MethodAttribute(name="Knuckles\\Scribe\\Attributes\\Header", arguments=["X-Tenant"]),
            MethodAttribute(name="Knuckles\\Scribe\\Attributes\\ResponseFromApiResource", arguments=["PostResource", "Post", 202]),
            MethodAttribute(name="Knuckles\\Scribe\\Attributes\\Response", arguments=["{}"]),
        ],
    )
    # Written tags win over attributes
    assert meta.body_params["title"].lines == ["@bodyParam title string required The headline. Example: Hello"]
    assert meta.query_params["page"].lines == []
    assert meta.headers["X-Tenant"].lines == []
    assert meta.responses[202][0].lines == []
    assert meta.responses[200][0].lines == []


def test_unauthenticated_attribute():
    meta = apply_attributes(DocMetadata(), [MethodAttribute(name="Unauthenticated")])
    assert meta.authenticated is not None
    assert meta.authenticated.lines == []

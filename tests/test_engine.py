"""
Tests for the analysis session: eligibility, errors, batches and caching.
"""

import pytest

from routescribe.config import Settings
from routescribe.core.engine import AnalysisSession
from routescribe.core.errors import GenerationError, SourceParseError, UnitResolutionError


ABSTRACT_CONTROLLER = r'''<?php

namespace App\Http\Controllers;

abstract class BaseController extends Controller
{
    public function index()
    {
        return [];
    }
}
'''

INTERFACE_ONLY = r'''<?php

namespace App\Contracts;

interface Documents
{
    public function index();
}
'''


def test_default_eligibility(post_analyses):
    assert list(post_analyses) == ["index", "show", "store", "update", "destroy"]


def test_simple_methods_forced(schemas, class_index, post_controller):
    session = AnalysisSession(Settings(include_simple_methods=True), schemas, class_index)
    names = list(session.analyze(post_controller))
    assert "scassa" in names
    assert "__construct" not in names
    assert "helper" not in names


def test_named_method_is_analyzed_regardless_of_eligibility(session, post_controller):
    analyses = session.analyze(post_controller, "scassa")
    assert list(analyses) == ["scassa"]


def test_missing_method(session, post_controller):
    with pytest.raises(UnitResolutionError, match="Method archive not found in PostController"):
        session.analyze(post_controller, "archive")


def test_unit_without_class(session):
    with pytest.raises(UnitResolutionError, match="No documentable class found in contracts.php"):
        session.analyze(INTERFACE_ONLY, path="contracts.php")


def test_abstract_class(session):
    with pytest.raises(UnitResolutionError, match="is abstract"):
        session.analyze(ABSTRACT_CONTROLLER)


def test_unparseable_source(session):
    with pytest.raises(SourceParseError) as excinfo:
        session.analyze("<?php class {", path="broken.php")
    assert excinfo.value.unit == "broken.php"


def test_batch_contains_failures(session, post_controller, report_controller):
    result = session.analyze_batch(
        {
            "PostController.php": post_controller,
            "BaseController.php": ABSTRACT_CONTROLLER,
            "ReportController.php": report_controller,
            "broken.php": "<?php class {",
        }
    )
    assert set(result.analyses) == {"PostController.php", "ReportController.php"}
    assert set(result.failures) == {"BaseController.php", "broken.php"}
    assert result.documented == 6
    assert not result.ok


def test_document_renders_each_method(session, post_controller):
    docs = session.document(post_controller)
    assert list(docs) == ["index", "show", "store", "update", "destroy"]
    assert all(doc.startswith("/**") for doc in docs.values())


def test_render_method_requires_analysis(session, post_analyses):
    assert session.render_method(post_analyses, "store") == session.render(post_analyses["store"])
    with pytest.raises(GenerationError):
        session.render_method(post_analyses, "archive")


def test_parsed_units_and_schemas_are_cached(session, post_controller):
    session.analyze(post_controller, path="a.php")
    session.analyze(post_controller, path="a.php")
    stats = session.stats()
    assert set(stats) == {"classes", "units", "model_schemas", "resource_shapes"}
    assert stats["units"]["total_entries"] == 1
    assert stats["model_schemas"]["hits"] > 0


def test_return_type_info(session, post_analyses):
    show = post_analyses["show"]
    assert show.return_type.type == "mixed"
    assert show.return_type.return_count == 1

"""
Example Synthesizer: realistic JSON examples for responses and parameters.

Response examples follow a fixed decision order:
    1. 204 has no body; error statuses get the error envelope.
    2. Content with an explicit structure (wrapper keys or variable
       placeholders) is kept, with placeholders resolved by name.
    3. Literal content without placeholders is returned verbatim.
    4. Otherwise the response shape decides: single model instance,
       one-item collection, paginated envelope or resource wrapper.
    5. With no models, {"id": 1} or [{"id": 1}].

Field values come from ordered (pattern, producer) tables; the first
matching row wins and the row order is significant. Values are drawn from
a Faker instance reseeded before every example, so the same input always
yields the same example.
"""

from __future__ import annotations

import copy
import re
from datetime import datetime
from typing import Any, Callable

from faker import Faker

from routescribe.core.classifiers.responses import DYNAMIC_VALUE, EXCEPTION_MESSAGE
from routescribe.core.http_status import error_message, is_success, success_message
from routescribe.core.naming import plural, snake
from routescribe.core.rules import max_bound, min_bound, size_bound, tokenize
from routescribe.core.syntax import basename
from routescribe.models.analysis_models import (
    VARIABLE_MARKER,
    DynamicField,
    ParamSpec,
    ResourceShape,
    ResponseShape,
    ResponseSpec,
)
from routescribe.models.schema_models import ModelSchema

STRUCTURE_KEYS = ("message", "data", "meta", "status", "error", "errors", "success")
MODEL_KEYWORDS = ("sessione", "session", "patient", "user", "item", "resource", "record", "data")
HIDDEN_COLUMNS = frozenset({"password", "remember_token", "deleted_at"})
INTEGER_COLUMN_TYPES = frozenset({"int", "integer", "bigint", "smallint", "tinyint", "mediumint"})

PLACEHOLDER = re.compile(r"^\{\$(\w+)")
TIMESTAMP_FIELD = re.compile(r"_at$|_date$|_time$|_update$")
JSON_FIELD = re.compile(r"\b(annotations|settings|options|config|metadata|json)\b", re.IGNORECASE)

# Timestamps are drawn from a fixed window so seeded output never depends on the clock
WINDOW_START = datetime(2024, 1, 1)
WINDOW_END = datetime(2024, 12, 31, 23, 59, 59)
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

SchemaLookup = Callable[[str], ModelSchema]


class ExampleSynthesizer:
    """Turns response and parameter specs into example values."""

    def __init__(
        self,
        schema_for: SchemaLookup | None = None,
        seed: int | None = None,
        base_url: str = "http://example.com/api",
        max_relation_depth: int = 3,
    ) -> None:
        self.faker = Faker()
        self.seed = seed
        self.schema_for = schema_for or (lambda fqcn: ModelSchema(class_name=fqcn))
        self.base_url = base_url.rstrip("/")
        self.max_relation_depth = max_relation_depth
        self._field_patterns = self._build_field_patterns()
        self._param_patterns = self._build_param_patterns()

    def reseed(self) -> None:
        if self.seed is not None:
            self.faker.seed_instance(self.seed)

    # ── Responses ──

    def for_response(
        self,
        response: ResponseSpec,
        models: dict[str, ModelSchema],
        per_page: int | None = None,
        resource: ResourceShape | None = None,
    ) -> Any:
        self.reseed()
        status = response.effective_status
        if status == 204:
            return None
        content = response.content
        if not is_success(status):
            if isinstance(content, dict) and content:
                return self.structured(content, models, response)
            return self.error_example(status)

        if isinstance(content, dict) and has_explicit_structure(content):
            return self.structured(content, models, response)
        if _is_literal(content):
            return copy.deepcopy(content)

        shape = response.operation_type or ResponseShape.SINGLE
        if resource is not None:
            return self.from_resource(resource, models, response, shape, per_page)
        if not models:
            return [{"id": 1}] if shape in (ResponseShape.COLLECTION, ResponseShape.PAGINATED) else {"id": 1}
        if shape is ResponseShape.COLLECTION:
            return self.collection(models, response)
        if shape is ResponseShape.PAGINATED:
            return self.paginated(models, response, per_page)
        if shape is ResponseShape.RESOURCE:
            return self.resource(models, response)
        return self.single(models, response)

    def error_example(self, status: int, errors: dict[str, list[str]] | None = None) -> dict[str, Any]:
        return {
            "success": False,
            "message": error_message(status),
            "errors": (errors or {"field": ["Error message"]}) if status == 422 else None,
        }

    def structured(self, content: dict[Any, Any], models: dict[str, ModelSchema], response: ResponseSpec) -> dict:
        result: dict[Any, Any] = {}
        for key, value in content.items():
            if isinstance(value, dict) and VARIABLE_MARKER in value:
                result[key] = self.for_key(str(key), str(value[VARIABLE_MARKER]), models, response)
            elif isinstance(value, str) and (match := PLACEHOLDER.match(value)):
                result[key] = self.for_key(str(key), match.group(1), models, response)
            elif value == EXCEPTION_MESSAGE:
                status = response.effective_status
                result[key] = success_message(status) if is_success(status) else error_message(status)
            elif value == DYNAMIC_VALUE:
                result[key] = "..."
            elif isinstance(value, dict):
                result[key] = self.structured(value, models, response)
            elif isinstance(value, list):
                result[key] = [
                    self.structured(item, models, response) if isinstance(item, dict) else item for item in value
                ]
            else:
                result[key] = value
        return result

    def for_key(self, key: str, variable: str, models: dict[str, ModelSchema], response: ResponseSpec) -> Any:
        """Value for a placeholder, chosen by keyword-matching the key and variable names."""
        key_lower, var_lower = key.lower(), variable.lower()
        for keyword in MODEL_KEYWORDS:
            if keyword not in key_lower and keyword not in var_lower:
                continue
            if not models:
                return {"id": 1}
            chosen = next(iter(models))
            for fqcn in models:
                name = basename(fqcn).lower()
                if name in key_lower or name in var_lower:
                    chosen = fqcn
                    break
            instance = self.model_instance(models[chosen], 1)
            for relation in response.eager_relations:
                instance[relation] = [self.related_instance(relation, models[chosen])]
            return instance

        if "job" in key_lower or "batch" in key_lower:
            if "error" in key_lower:
                return "Error message"
            return f"batch-job-{self.faker.random_int(1000, 9999)}"
        if "error" in key_lower:
            return None
        return "..."

    def single(self, models: dict[str, ModelSchema], response: ResponseSpec) -> dict[str, Any]:
        schema = next(iter(models.values()))
        instance = self.model_instance(schema, 1)
        instance = self.add_relations(instance, response.eager_relations, schema, 1)
        return self.add_dynamic_fields(instance, response.dynamic_fields)

    def collection(self, models: dict[str, ModelSchema], response: ResponseSpec) -> list[dict[str, Any]]:
        return [self.single(models, response)]

    def paginated(
        self,
        models: dict[str, ModelSchema],
        response: ResponseSpec,
        per_page: int | None = None,
        items: list[Any] | None = None,
    ) -> dict[str, Any]:
        key = collection_key(next(iter(models))) if models else "items"
        path = f"{self.base_url}/{key.lower()}"
        size = per_page or 15
        return {
            "data": items if items is not None else self.collection(models, response),
            "links": {
                "first": f"{path}?page=1",
                "last": f"{path}?page=5",
                "prev": None,
                "next": f"{path}?page=2",
            },
            "meta": {
                "current_page": 1,
                "from": 1,
                "last_page": 5,
                "links": [
                    {"url": None, "label": "&laquo; Previous", "active": False},
                    {"url": f"{path}?page=1", "label": "1", "active": True},
                    {"url": f"{path}?page=2", "label": "2", "active": False},
                ],
                "path": path,
                "per_page": size,
                "to": size,
                "total": size * 5,
            },
        }

    def resource(self, models: dict[str, ModelSchema], response: ResponseSpec) -> dict[str, Any]:
        fqcn = next(iter(models))
        return {
            "data": self.single(models, response),
            "links": {"self": f"{self.base_url}/{snake(basename(fqcn))}/1"},
        }

    def from_resource(
        self,
        resource: ResourceShape,
        models: dict[str, ModelSchema],
        response: ResponseSpec,
        shape: ResponseShape,
        per_page: int | None = None,
    ) -> dict[str, Any]:
        """Example wrapped the way an API resource serializes: {"data": ...}."""
        schema = next(iter(models.values()), None)
        item = self.add_dynamic_fields(self.resource_instance(resource, schema), response.dynamic_fields)
        if shape is ResponseShape.PAGINATED:
            return self.paginated(models, response, per_page, items=[item])
        if resource.is_collection or shape is ResponseShape.COLLECTION:
            return {"data": [item]}
        return {"data": item}

    def resource_instance(self, shape: ResourceShape, schema: ModelSchema | None = None) -> dict[str, Any]:
        """Object following a resource's toArray() keys; model columns refine field types."""
        if not shape.fields and not shape.relations:
            return self.model_instance(schema, 1) if schema is not None else {"id": 1}
        instance: dict[str, Any] = {}
        for name, field in shape.fields.items():
            if name == "id":
                instance[name] = 1
                continue
            column = schema.columns.get(name) if schema is not None else None
            instance[name] = self.field_value(name, column.type if column is not None else field.type, 1)
        for name, relation in shape.relations.items():
            if relation.shape is not None:
                nested = self.resource_instance(relation.shape)
            else:
                nested = self.related_instance(name, schema)
            instance[name] = [nested] if relation.is_collection else nested
        return instance

    # ── Model instances ──

    def model_instance(self, schema: ModelSchema, record_id: int) -> dict[str, Any]:
        instance: dict[str, Any] = {"id": record_id}
        hidden = HIDDEN_COLUMNS | set(schema.hidden)
        if schema.columns:
            for column, info in schema.columns.items():
                if column in hidden or column == "id":
                    continue
                instance[column] = self.field_value(column, info.type, record_id)
        elif schema.fillable:
            for field in schema.fillable:
                if field in hidden:
                    continue
                instance[field] = self.field_value(field, cast_type(schema.casts.get(field)), record_id)
        else:
            instance = self.common_fields(schema.class_name, record_id)

        for appended in schema.appends:
            instance.setdefault(appended, self.field_value(appended, cast_type(schema.casts.get(appended)), record_id))

        if "created_at" not in instance:
            timestamp = self.timestamp()
            instance["created_at"] = timestamp
            instance["updated_at"] = timestamp
        return instance

    def common_fields(self, fqcn: str, record_id: int) -> dict[str, Any]:
        name = basename(fqcn).lower()
        fields: dict[str, Any] = {"id": record_id}
        if "user" in name:
            fields["name"] = self.faker.name()
            fields["email"] = self.faker.email()
        elif "product" in name:
            fields["name"] = self.faker.word()
            fields["price"] = self.money(10, 1000)
        elif "order" in name:
            fields["total"] = self.money(50, 5000)
            fields["status"] = self.faker.random_element(["pending", "processing", "completed"])
        else:
            fields["name"] = self.faker.word()
            fields["description"] = self.faker.sentence()
        timestamp = self.timestamp()
        fields["created_at"] = timestamp
        fields["updated_at"] = timestamp
        return fields

    def field_value(self, field: str, column_type: str, record_id: int) -> Any:
        lowered = field.lower()
        column_type = (column_type or "string").lower()
        if field.endswith("_id"):
            return self.faker.random_int(1, 100)
        if field.endswith(("_value", "_score")):
            return self.faker.random_int(0, 100)
        if TIMESTAMP_FIELD.search(field):
            return self.timestamp()
        if JSON_FIELD.search(field) or field == "data":
            return {"key": "value"}
        if column_type in INTEGER_COLUMN_TYPES:
            if any(word in lowered for word in ("type", "status", "state")):
                return self.faker.random_int(1, 10)
            return self.faker.random_int(1, 100)

        for pattern, produce in self._field_patterns:
            if pattern.search(lowered):
                return produce()
        return self.typed_value(column_type, record_id)

    def typed_value(self, column_type: str, record_id: int = 1) -> Any:
        if column_type in INTEGER_COLUMN_TYPES:
            return record_id
        if column_type in ("decimal", "float", "double", "number"):
            return self.money(0, 1000)
        if column_type in ("boolean", "bool"):
            return self.faker.boolean()
        if column_type in ("datetime", "timestamp"):
            return self.timestamp()
        if column_type == "date":
            return self.timestamp()[:10]
        if column_type == "time":
            return self.faker.time()
        if column_type in ("json", "array", "object"):
            return {"key": "value"}
        if column_type in ("text", "longtext", "mediumtext"):
            return self.faker.text(max_nb_chars=200)
        return self.faker.word()

    def dynamic_value(self, field: str, value_type: str) -> Any:
        lowered = field.lower()
        if "status" in lowered:
            return self.faker.random_element(["Created", "Started", "Completed", "Pending"])
        if "count" in lowered or "number" in lowered:
            return self.faker.random_int(1, 100)
        if "flag" in lowered or "is_" in lowered or "has_" in lowered:
            return self.faker.boolean()
        if value_type in ("integer", "int"):
            return self.faker.random_int(1, 100)
        if value_type in ("float", "double"):
            return self.money(0, 100)
        if value_type in ("boolean", "bool"):
            return self.faker.boolean()
        if value_type == "array":
            return {"key": "value"}
        return self.faker.word()

    def add_dynamic_fields(self, instance: dict[str, Any], fields: list[DynamicField]) -> dict[str, Any]:
        for dynamic in fields:
            instance[dynamic.field] = self.dynamic_value(dynamic.field, dynamic.value_type)
        return instance

    # ── Relations ──

    def add_relations(self, instance: dict[str, Any], relations: list[str], schema: ModelSchema, depth: int) -> dict:
        """Attach eager-loaded relations; 'a.b.c' nests b under a and c under b."""
        tree: dict[str, list[str]] = {}
        for relation in relations:
            top, _, rest = relation.partition(".")
            tree.setdefault(top, [])
            if rest:
                tree[top].append(rest)

        for name, nested in tree.items():
            related = self.related_instance(name, schema)
            info = schema.relations.get(name)
            if nested and info is not None and info.related and depth < self.max_relation_depth:
                related = self.add_relations(related, nested, self.schema_for(info.related), depth + 1)
            instance[name] = related if info is not None and not info.is_many else [related]
        return instance

    def related_instance(self, relation: str, parent: ModelSchema | None = None) -> dict[str, Any]:
        info = parent.relations.get(relation) if parent is not None else None
        if info is not None and info.related:
            return self.model_instance(self.schema_for(info.related), 1)

        lowered = relation.lower()
        if "user" in lowered:
            return {"id": self.faker.random_int(1, 100), "name": self.faker.name(), "email": self.faker.email()}
        if "answer" in lowered:
            return {
                "id": self.faker.random_int(1, 100),
                "questionnaire_id": self.faker.random_int(1, 100),
                "index": self.faker.random_int(1, 20),
                "question": self.faker.word(),
                "answer_value": self.faker.word(),
            }
        if "product" in lowered:
            return {"id": self.faker.random_int(1, 100), "name": self.faker.word(), "price": self.money(10, 1000)}
        if "order" in lowered:
            return {
                "id": self.faker.random_int(1, 100),
                "total": self.money(50, 5000),
                "status": self.faker.random_element(["pending", "processing", "completed"]),
            }
        return {"id": self.faker.random_int(1, 100), "name": self.faker.word()}

    # ── Parameters ──

    def for_param(self, param: ParamSpec) -> Any:
        """Example for a request parameter: integers and `_id` fields, then name patterns, then the rule type."""
        self.reseed()
        tokens = tokenize(param.rules)
        low, high = min_bound(tokens), max_bound(tokens)
        if param.type == "integer" or param.field.lower().endswith("_id"):
            start = int(low) if low is not None else 1
            end = int(high) if high is not None else max(start, 100)
            return self.faker.random_int(start, max(start, end))

        lowered = param.field.lower()
        for pattern, produce in self._param_patterns:
            if pattern.search(lowered):
                return produce()

        names = {token.name for token in tokens}
        size = size_bound(tokens)
        if param.type == "number":
            start = float(low) if low is not None else 1.0
            end = float(high) if high is not None else max(start, 100.0)
            return round(self.faker.pyfloat(min_value=start, max_value=max(start + 0.01, end)), 2)
        if param.type == "boolean":
            return self.faker.boolean()
        if param.type == "array":
            return [self.faker.word()]
        if param.type == "datetime":
            return self.timestamp()
        if param.type == "file":
            return None
        if "email" in names:
            return self.faker.email()
        if "url" in names or "active_url" in names:
            return self.faker.url()
        if "uuid" in names:
            return self.faker.uuid4()
        if size is not None and size >= 1:
            return self.faker.lexify("?" * int(size))
        if high is not None and high >= 5:
            text = self.faker.text(max_nb_chars=int(min(high, 200)))
            return text if len(text) <= high else text[: int(high)]
        return self.faker.word()

    # ── Producers ──

    def timestamp(self) -> str:
        moment = self.faker.date_time_between_dates(datetime_start=WINDOW_START, datetime_end=WINDOW_END)
        return moment.strftime(TIMESTAMP_FORMAT)

    def money(self, low: float, high: float) -> float:
        return round(self.faker.pyfloat(min_value=low, max_value=high, right_digits=2), 2)

    def _build_field_patterns(self) -> list[tuple[re.Pattern[str], Callable[[], Any]]]:
        f = self.faker
        table: list[tuple[str, Callable[[], Any]]] = [
            (r"email", f.email),
            (r"name", f.name),
            (r"first_name", f.first_name),
            (r"last_name", f.last_name),
            (r"phone|mobile|tel", f.phone_number),
            (r"address|street", f.address),
            (r"city", f.city),
            (r"country", f.country),
            (r"zip|postcode", f.postcode),
            (r"description|bio|about", f.paragraph),
            (r"title|subject", f.sentence),
            (r"content|body|message", lambda: "\n\n".join(f.paragraphs(nb=2))),
            (r"price|amount|cost|total", lambda: self.money(1, 1000)),
            (r"quantity|count|number", lambda: f.random_int(1, 100)),
            (r"status", lambda: f.random_element(["active", "inactive", "pending"])),
            (r"type", lambda: f.random_element(["standard", "premium", "vip"])),
            (r"url|website|link", f.url),
            (r"image|photo|avatar", f.image_url),
            (r"note", f.sentence),
        ]
        return [(re.compile(pattern), produce) for pattern, produce in table]

    def _build_param_patterns(self) -> list[tuple[re.Pattern[str], Callable[[], Any]]]:
        f = self.faker
        table: list[tuple[str, Callable[[], Any]]] = [
            (r"email", f.email),
            (r"name", f.name),
            (r"phone|mobile|tel", f.phone_number),
            (r"address|street", f.address),
            (r"city", f.city),
            (r"state|province", f.state),
            (r"zip|postcode", f.postcode),
            (r"country", f.country),
            (r"date", lambda: self.timestamp()[:10]),
            (r"price|amount|cost", lambda: self.money(1, 1000)),
            (r"quantity|count", lambda: f.random_int(1, 100)),
        ]
        return [(re.compile(pattern), produce) for pattern, produce in table]


def has_explicit_structure(content: dict[Any, Any]) -> bool:
    """Wrapper keys, or a string key holding a variable placeholder."""
    if not content:
        return False
    if any(key in content for key in STRUCTURE_KEYS):
        return True
    for key, value in content.items():
        if not isinstance(key, str) or key.isdigit():
            continue
        if isinstance(value, dict) and VARIABLE_MARKER in value:
            return True
        if isinstance(value, str) and PLACEHOLDER.match(value):
            return True
    return False


def has_placeholder(value: Any) -> bool:
    if isinstance(value, dict):
        return VARIABLE_MARKER in value or any(has_placeholder(v) for v in value.values())
    if isinstance(value, list):
        return any(has_placeholder(v) for v in value)
    return isinstance(value, str) and value.startswith("{") and value.endswith("}")


def _is_literal(content: Any) -> bool:
    if content is None or content == {} or content == []:
        return False
    return not has_placeholder(content)


def cast_type(cast: str | None) -> str:
    """Column-like type for a model cast."""
    if not cast:
        return "string"
    cast = cast.lower()
    if cast in ("integer", "int"):
        return "integer"
    if cast in ("float", "double", "decimal", "real"):
        return "float"
    if cast in ("boolean", "bool"):
        return "boolean"
    if cast in ("array", "json", "object", "collection", "encrypted:array", "asarrayobject", "ascollection"):
        return "json"
    if cast in ("datetime", "date", "timestamp", "immutable_datetime", "immutable_date"):
        return "datetime"
    return "string"


def collection_key(fqcn: str) -> str:
    """BlogPost → blogPosts."""
    short = basename(fqcn)
    camel = short[:1].lower() + short[1:]
    return plural(camel)

"""
Analysis Data Models: the per-method analysis record and its parts.

These models are the output of the body walker, the operation classifiers
and the analysis merger, and the input to the example synthesizer and the
comment renderer.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from routescribe.models.schema_models import ModelSchema


# Marker key for a top-level variable placeholder in response content
VARIABLE_MARKER = "__variable__"


class OperationType(str, Enum):
    INDEX = "index"
    SHOW = "show"
    STORE = "store"
    UPDATE = "update"
    DESTROY = "destroy"
    NONE = "none"


class ResponseShape(str, Enum):
    SINGLE = "single"
    COLLECTION = "collection"
    PAGINATED = "paginated"
    RESOURCE = "resource"


PARAM_TYPES = ("string", "integer", "number", "boolean", "array", "object", "file", "datetime")


class ValueInfo(BaseModel):
    """Inferred type (and literal value, when known) of an expression."""

    type: str = Field(default="mixed", description="string/int/float/bool/null/array/object/variable/mixed")
    value: Any = None
    class_name: str | None = Field(default=None, description="FQCN for object-typed values")
    is_collection: bool = False


class DynamicField(BaseModel):
    """An attribute assigned onto an object at runtime ($obj->field = value)."""

    field: str
    value_type: str = "mixed"


class CallSite(BaseModel):
    """A static, instance or function call found in a method body."""

    type: str = Field(..., description="static | instance | function")
    method: str
    class_name: str | None = None
    receiver: str | None = Field(default=None, description="Receiver variable name ('this' for $this)")
    variable_type: str | None = Field(default=None, description="Inferred type of the receiver")
    arguments: list[ValueInfo] = Field(default_factory=list)
    line: int = 0


class ConditionInfo(BaseModel):
    kind: str
    condition: str = ""
    complexity: int = 1


class ResourceField(BaseModel):
    name: str
    type: str = "string"
    conditional: str | None = Field(default=None, description="when/whenLoaded/... guard, if any")


class ResourceRelation(BaseModel):
    name: str
    resource: str | None = Field(default=None, description="FQCN of the nested resource class")
    is_collection: bool = False
    conditional: bool = False
    shape: ResourceShape | None = None


class ResourceShape(BaseModel):
    """Serialization shape of an API resource class, read from its toArray()."""

    class_name: str
    fields: dict[str, ResourceField] = Field(default_factory=dict)
    relations: dict[str, ResourceRelation] = Field(default_factory=dict)
    is_collection: bool = False
    resolved: bool = Field(default=True, description="False when the class source was not found")


class ParamSpec(BaseModel):
    """A documented request parameter."""

    field: str
    type: str = "string"
    required: bool = False
    nullable: bool = False
    description: str = ""
    example: Any = None
    constraints: list[str] = Field(default_factory=list)
    rules: list[str] = Field(default_factory=list)


class ResponseSpec(BaseModel):
    """A response a method can produce."""

    status: int | None = None
    type: str = "unknown"
    content: Any = None
    message: str | None = None
    operation_type: ResponseShape | None = None
    eager_relations: list[str] = Field(default_factory=list)
    dynamic_fields: list[DynamicField] = Field(default_factory=list)
    example: Any = None

    @property
    def effective_status(self) -> int:
        return self.status if self.status is not None else 200


class ExceptionSpec(BaseModel):
    exception: str
    status: int = 400
    message: str | None = None
    arguments: list[ValueInfo] = Field(default_factory=list)


class OperationMap(BaseModel):
    """Operation tags accumulated while walking a method body."""

    database: list[str] = Field(default_factory=list)
    transaction: bool = False
    cache: list[str] = Field(default_factory=list)
    jobs: list[str] = Field(default_factory=list)
    responses: list[ResponseSpec] = Field(default_factory=list)
    response_helpers: list[str] = Field(default_factory=list)
    exceptions: list[ExceptionSpec] = Field(default_factory=list)
    authorization: list[str] = Field(default_factory=list)
    validation: list[str] = Field(default_factory=list)
    eager_relations: list[str] = Field(default_factory=list)
    body_params: dict[str, ParamSpec] = Field(default_factory=dict)
    api_resources: list[ResourceShape] = Field(default_factory=list)
    dynamic_fields: list[DynamicField] = Field(default_factory=list)
    logging: list[str] = Field(default_factory=list)
    auth: list[str] = Field(default_factory=list)
    mail: list[str] = Field(default_factory=list)
    notifications: list[str] = Field(default_factory=list)
    events: list[str] = Field(default_factory=list)
    broadcasts: list[str] = Field(default_factory=list)


class BodyTrace(BaseModel):
    empty: bool = False
    operations: OperationMap = Field(default_factory=OperationMap)
    variables: dict[str, ValueInfo] = Field(default_factory=dict)
    calls: list[CallSite] = Field(default_factory=list)
    conditions: list[ConditionInfo] = Field(default_factory=list)
    loops: list[str] = Field(default_factory=list)


class Complexity(BaseModel):
    cyclomatic: int = 1
    cognitive: int = 0
    maintainability_index: float = 100.0
    max_nesting: int = 0


class ParameterInfo(BaseModel):
    """A declared method parameter."""

    name: str
    type: str = "mixed"
    default: str | None = None
    is_optional: bool = False
    is_variadic: bool = False
    form_request: str | None = Field(default=None, description="FQCN when typed with a FormRequest")
    model_class: str | None = Field(default=None, description="FQCN when route-model bound")


class MethodAttribute(BaseModel):
    """A PHP 8 attribute on a method, with its literal arguments."""

    name: str = Field(..., description="Resolved attribute class name")
    arguments: list[Any] = Field(default_factory=list)
    named_arguments: dict[str, Any] = Field(default_factory=dict)

    def argument(self, name: str, position: int) -> Any:
        """Named argument, else positional one, else None."""
        if name in self.named_arguments:
            return self.named_arguments[name]
        return self.arguments[position] if position < len(self.arguments) else None


class ReturnTypeInfo(BaseModel):
    type: str = "mixed"
    nullable: bool = False
    is_builtin: bool = False
    return_count: int = 0


class PaginationInfo(BaseModel):
    has_pagination: bool = False
    method: str | None = None
    per_page: int | None = None


class AuthorizationInfo(BaseModel):
    required: bool = False
    calls: list[str] = Field(default_factory=list)


class MiddlewareEntry(BaseModel):
    name: str
    only: list[str] | None = None
    except_: list[str] | None = Field(default=None, alias="except")

    model_config = {"populate_by_name": True}

    def applies_to(self, method_name: str) -> bool:
        if self.only is not None and method_name not in self.only:
            return False
        if self.except_ is not None and method_name in self.except_:
            return False
        return True


class MiddlewareInfo(BaseModel):
    controller_middleware: list[MiddlewareEntry] = Field(default_factory=list)
    route_middleware: list[str] = Field(default_factory=list)
    requires_auth: bool = False
    auth_guard: str | None = None


class RateLimitInfo(BaseModel):
    enabled: bool = False
    max_attempts: int | str | None = None
    decay_minutes: int | str | None = None


class ModelOperation(BaseModel):
    model: str
    operation: str
    intent: OperationType | None = None
    line: int = 0


class FormRequestInfo(BaseModel):
    class_name: str
    rules: dict[str, list[str]] = Field(default_factory=dict)
    messages: dict[str, str] = Field(default_factory=dict)
    attributes: dict[str, str] = Field(default_factory=dict)
    authorize: bool | None = None


class ApiResourceTag(BaseModel):
    name: str
    model: str | None = None
    is_collection: bool = False


class RouteInfo(BaseModel):
    methods: list[str] = Field(default_factory=list)
    uri: str = ""


class MethodAnalysis(BaseModel):
    """The unified analysis record for one documented controller method."""

    name: str
    controller_class: str = ""
    visibility: str = "public"
    is_static: bool = False
    parameters: list[ParameterInfo] = Field(default_factory=list)
    attributes: list[MethodAttribute] = Field(default_factory=list)
    return_type: ReturnTypeInfo = Field(default_factory=ReturnTypeInfo)
    body: BodyTrace = Field(default_factory=BodyTrace)
    complexity: Complexity = Field(default_factory=Complexity)

    models: dict[str, ModelSchema] = Field(default_factory=dict)
    model_operations: list[ModelOperation] = Field(default_factory=list)
    operation_type: OperationType = OperationType.NONE
    pagination: PaginationInfo = Field(default_factory=PaginationInfo)
    creates_model: str | None = None
    updates_model: str | None = None
    deletes_model: str | None = None

    responses: list[ResponseSpec] = Field(default_factory=list)
    exceptions: list[ExceptionSpec] = Field(default_factory=list)
    validation_rules: dict[str, list[str]] = Field(default_factory=dict)
    body_params: dict[str, ParamSpec] = Field(default_factory=dict)
    query_params: dict[str, ParamSpec] = Field(default_factory=dict)
    url_params: dict[str, ParamSpec] = Field(default_factory=dict)
    form_requests: dict[str, FormRequestInfo] = Field(default_factory=dict)

    authorization: AuthorizationInfo = Field(default_factory=AuthorizationInfo)
    middleware: MiddlewareInfo = Field(default_factory=MiddlewareInfo)
    rate_limiting: RateLimitInfo = Field(default_factory=RateLimitInfo)
    route: RouteInfo | None = None

    database_operations: list[str] = Field(default_factory=list)
    cache_operations: list[str] = Field(default_factory=list)
    job_operations: list[str] = Field(default_factory=list)

    api_resource: ApiResourceTag | None = None
    default_example: Any = None
    existing_doc: str | None = None
    errors: list[str] = Field(
        default_factory=list, description="Non-fatal classifier failures"
    )


ResourceRelation.model_rebuild()

"""
sddgen Spec Models - Pydantic models for oracle JSON payloads

The spec and architecture phases ask the oracle for JSON. These models are the
schemas those payloads are validated against; a mismatch fails the phase
immediately instead of leaking loosely-typed data into later phases.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ═══════════════════════════════════════════════════════════════════════════
# ENUMS
# ═══════════════════════════════════════════════════════════════════════════


class RelationType(str, Enum):
    ONE_TO_ONE = "oneToOne"
    ONE_TO_MANY = "oneToMany"
    MANY_TO_ONE = "manyToOne"
    MANY_TO_MANY = "manyToMany"


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class UIComponentType(str, Enum):
    PAGE = "page"
    COMPONENT = "component"
    LAYOUT = "layout"


class FileType(str, Enum):
    PAGE = "page"
    COMPONENT = "component"
    API = "api"
    LIB = "lib"
    CONFIG = "config"
    STYLE = "style"
    TYPE = "type"
    TEST = "test"


# ═══════════════════════════════════════════════════════════════════════════
# PARSED SPEC
# ═══════════════════════════════════════════════════════════════════════════


class TechStack(BaseModel):
    """Technology choices stated in the spec"""

    frontend: str
    backend: str | None = None
    database: str | None = None
    styling: str
    authentication: str | None = None
    deployment: str | None = None
    other: dict[str, str] | None = None


class ModelField(BaseModel):
    """Data model field"""

    name: str
    type: str
    required: bool | None = None
    default: Any | None = None
    description: str | None = None


class Relation(BaseModel):
    """Relation between data models"""

    type: RelationType
    model: str
    field: str | None = None


class DataModel(BaseModel):
    """Domain data model"""

    name: str
    description: str | None = None
    fields: list[ModelField]
    relations: list[Relation] | None = None


class ApiEndpoint(BaseModel):
    """API endpoint named by the spec"""

    method: HTTPMethod
    path: str
    description: str | None = None
    request: Any | None = None
    response: Any | None = None


class UIComponent(BaseModel):
    """UI element named by the spec"""

    name: str
    type: UIComponentType
    description: str | None = None
    props: dict[str, str] | None = None


class Requirements(BaseModel):
    """Free-form requirement lists"""

    functional: list[str] | None = None
    non_functional: list[str] | None = Field(None, alias="nonFunctional")
    constraints: list[str] | None = None

    model_config = {"populate_by_name": True}


class ParsedSpec(BaseModel):
    """Structured form of the Markdown application spec"""

    project_name: str = Field(alias="projectName")
    description: str
    features: list[str]
    tech_stack: TechStack = Field(alias="techStack")
    data_models: list[DataModel] = Field(alias="dataModels")
    api_endpoints: list[ApiEndpoint] | None = Field(None, alias="apiEndpoints")
    ui_components: list[UIComponent] | None = Field(None, alias="uiComponents")
    requirements: Requirements | None = None

    model_config = {"populate_by_name": True}


# ═══════════════════════════════════════════════════════════════════════════
# ARCHITECTURE
# ═══════════════════════════════════════════════════════════════════════════


class DirectorySpec(BaseModel):
    """Planned directory"""

    path: str
    purpose: str
    files: list[str] | None = None


class ProjectStructure(BaseModel):
    root_dir: str = Field(alias="rootDir")
    directories: list[DirectorySpec]

    model_config = {"populate_by_name": True}


class Dependencies(BaseModel):
    dependencies: dict[str, str] = {}
    dev_dependencies: dict[str, str] = Field({}, alias="devDependencies")

    model_config = {"populate_by_name": True}


class ConfigFile(BaseModel):
    """Planned configuration file"""

    filename: str
    purpose: str
    content: str | None = None


class FileSpec(BaseModel):
    """Planned source file"""

    path: str
    type: FileType
    purpose: str
    dependencies: list[str] | None = None
    exports: list[str] | None = None


class ArchitecturePlan(BaseModel):
    """Complete project architecture"""

    project_name: str = Field(alias="projectName")
    project_structure: ProjectStructure = Field(alias="projectStructure")
    dependencies: Dependencies
    config_files: list[ConfigFile] = Field(alias="configFiles")
    file_list: list[FileSpec] = Field(alias="fileList")

    model_config = {"populate_by_name": True}

"""
sddgen Phase Outputs - Typed results passed between phases

Each code-generating phase returns one of these models. Later phases read
them (e.g. the config phase picks dependencies from the ORM the database
phase actually produced).
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel


class ORM(str, Enum):
    PRISMA = "prisma"
    DRIZZLE = "drizzle"


class ComponentKind(str, Enum):
    """Atomic design level"""
    ATOM = "atom"
    MOLECULE = "molecule"
    ORGANISM = "organism"


class ClientFileKind(str, Enum):
    CLIENT = "client"
    HELPER = "helper"
    TYPES = "types"


# ═══════════════════════════════════════════════════════════════════════════
# DATABASE
# ═══════════════════════════════════════════════════════════════════════════


class DatabasePlan(BaseModel):
    orm: ORM
    database: str  # postgresql, mysql, sqlite, ...
    models: list[str]
    needs_migrations: bool = True
    needs_seed: bool = True


class SchemaFile(BaseModel):
    path: str
    orm: ORM
    models: list[str]
    size: int


class MigrationFile(BaseModel):
    path: str
    name: str
    size: int


class SeedFile(BaseModel):
    path: str
    models: list[str]  # Models being seeded
    size: int


class ClientFile(BaseModel):
    path: str
    type: ClientFileKind
    size: int


class DatabaseOutput(BaseModel):
    project_path: Path
    schema_files: list[SchemaFile] = []
    migration_files: list[MigrationFile] = []
    seed_files: list[SeedFile] = []
    client_files: list[ClientFile] = []
    files_generated: int = 0

    @property
    def orm(self) -> ORM | None:
        """ORM actually used by the generated schema, if any"""
        return self.schema_files[0].orm if self.schema_files else None


# ═══════════════════════════════════════════════════════════════════════════
# FRONTEND
# ═══════════════════════════════════════════════════════════════════════════


class ComponentPlan(BaseModel):
    atoms: list[str] = []
    molecules: list[str] = []
    organisms: list[str] = []
    pages: list[str] = []
    providers: list[str] = []


class GeneratedComponent(BaseModel):
    path: str
    name: str
    type: ComponentKind
    is_client: bool  # Has a 'use client' directive
    has_accessibility: bool
    size: int


class GeneratedPage(BaseModel):
    path: str
    route: str
    is_client: bool
    layout: str | None = None
    size: int


class GeneratedProvider(BaseModel):
    path: str
    name: str
    provides: list[str]
    size: int


class FrontendOutput(BaseModel):
    project_path: Path
    components: list[GeneratedComponent] = []
    pages: list[GeneratedPage] = []
    providers: list[GeneratedProvider] = []
    files_generated: int = 0


# ═══════════════════════════════════════════════════════════════════════════
# BACKEND
# ═══════════════════════════════════════════════════════════════════════════


class BackendPlan(BaseModel):
    api_routes: list[str] = []
    server_actions: list[str] = []
    middleware: list[str] = []
    utilities: list[str] = []
    database: list[str] = []


class GeneratedAPIRoute(BaseModel):
    path: str
    endpoint: str
    methods: list[str]
    has_validation: bool
    has_auth: bool
    size: int


class GeneratedServerAction(BaseModel):
    path: str
    name: str
    has_validation: bool
    size: int


class GeneratedMiddleware(BaseModel):
    path: str
    name: str
    purpose: str
    size: int


class GeneratedUtility(BaseModel):
    path: str
    name: str
    functions: list[str]
    size: int


class BackendOutput(BaseModel):
    project_path: Path
    api_routes: list[GeneratedAPIRoute] = []
    server_actions: list[GeneratedServerAction] = []
    middleware: list[GeneratedMiddleware] = []
    utilities: list[GeneratedUtility] = []
    files_generated: int = 0


# ═══════════════════════════════════════════════════════════════════════════
# CONFIG
# ═══════════════════════════════════════════════════════════════════════════


class GeneratedConfigFile(BaseModel):
    path: str
    size: int


class ConfigOutput(BaseModel):
    project_path: Path
    config_files: list[GeneratedConfigFile] = []
    files_generated: int = 0

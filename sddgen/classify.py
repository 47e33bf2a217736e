"""
sddgen Classifiers - Heuristic summaries of generated files

Everything here is best-effort: paths and contents are matched with
substrings and regexes to describe what the oracle produced (which files are
pages, whether a route validates input, ...). The results are reporting
aids, not correctness guarantees, and nothing downstream depends on them
being right.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from sddgen.artifacts import Artifact
from sddgen.outputs import (
    ORM,
    BackendPlan,
    ClientFile,
    ClientFileKind,
    ComponentKind,
    ComponentPlan,
    GeneratedAPIRoute,
    GeneratedComponent,
    GeneratedMiddleware,
    GeneratedPage,
    GeneratedProvider,
    GeneratedServerAction,
    GeneratedUtility,
    MigrationFile,
    SchemaFile,
    SeedFile,
)
from sddgen.spec import FileSpec

HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
KNOWN_PROVIDES = ("QueryClient", "AuthContext", "ThemeContext", "Toaster")

_PRISMA_MODEL = re.compile(r"model\s+(\w+)\s*{")
_DRIZZLE_TABLE = re.compile(r"export const (\w+) = .*Table")
_SEEDED_MODEL = re.compile(r"prisma\.(\w+)\.create|db\.insert\((\w+)\)")
_EXPORTED_FUNCTION = re.compile(r"export (?:async )?function (\w+)")
_ACCESSIBILITY = re.compile(r"aria-|role=|alt=")
_ROUTE_GROUP = re.compile(r"\(.*?\)")


def _stem(path: str) -> str:
    return PurePosixPath(path).stem


def _is_client(content: str) -> bool:
    return "'use client'" in content or '"use client"' in content


def _has_validation(content: str) -> bool:
    return "z.object" in content or ".parse(" in content


# ═══════════════════════════════════════════════════════════════════════════
# PLANNING (architecture file list)
# ═══════════════════════════════════════════════════════════════════════════


def filter_frontend_files(files: list[FileSpec]) -> list[FileSpec]:
    """Planned files owned by the frontend phase (app/ minus app/api/, components, .tsx)."""
    selected = []
    for spec in files:
        path = spec.path.lower()
        if path.startswith("app/api/"):
            continue
        if (
            path.startswith(("app/", "components/", "contexts/"))
            or path.endswith((".tsx", ".jsx"))
        ):
            selected.append(spec)
    return selected


def filter_backend_files(files: list[FileSpec]) -> list[FileSpec]:
    """Planned files owned by the backend phase (API routes, lib/*, plain .ts)."""
    prefixes = (
        "app/api/",
        "lib/actions/",
        "lib/database/",
        "lib/auth/",
        "lib/validations/",
        "lib/utils/",
    )
    selected = []
    for spec in files:
        path = spec.path.lower()
        if path.startswith(prefixes) or path == "middleware.ts" or path.endswith(".ts"):
            selected.append(spec)
    return selected


def plan_components(files: list[FileSpec]) -> ComponentPlan:
    plan = ComponentPlan()
    for spec in files:
        path = spec.path.lower()
        if "components/ui/" in path:
            plan.atoms.append(spec.path)
        elif "components/forms/" in path:
            plan.molecules.append(spec.path)
        elif "components/" in path:
            plan.organisms.append(spec.path)
        elif "/page.tsx" in path:
            plan.pages.append(spec.path)
        elif "contexts/" in path or "providers" in path:
            plan.providers.append(spec.path)
    return plan


def plan_backend_files(files: list[FileSpec]) -> BackendPlan:
    plan = BackendPlan()
    for spec in files:
        path = spec.path.lower()
        if path.startswith("app/api/"):
            plan.api_routes.append(spec.path)
        elif path.startswith("lib/actions/"):
            plan.server_actions.append(spec.path)
        elif "middleware" in path:
            plan.middleware.append(spec.path)
        elif path.startswith("lib/database/"):
            plan.database.append(spec.path)
        elif path.startswith(("lib/utils/", "lib/validations/", "lib/auth/")):
            plan.utilities.append(spec.path)
    return plan


# ═══════════════════════════════════════════════════════════════════════════
# DATABASE ARTIFACTS
# ═══════════════════════════════════════════════════════════════════════════


def classify_schema_files(artifacts: list[Artifact], orm: ORM) -> list[SchemaFile]:
    result = []
    for artifact in artifacts:
        if orm == ORM.PRISMA:
            if not artifact.path.endswith("schema.prisma"):
                continue
            models = _PRISMA_MODEL.findall(artifact.content)
        else:
            if "lib/database/schema.ts" not in artifact.path:
                continue
            models = _DRIZZLE_TABLE.findall(artifact.content)
        result.append(SchemaFile(path=artifact.path, orm=orm, models=models, size=artifact.size))
    return result


def classify_migration_files(artifacts: list[Artifact]) -> list[MigrationFile]:
    return [
        MigrationFile(path=a.path, name=PurePosixPath(a.path).name, size=a.size)
        for a in artifacts
        if "migrations/" in a.path
    ]


def classify_seed_files(artifacts: list[Artifact]) -> list[SeedFile]:
    result = []
    for artifact in artifacts:
        if "seed.ts" not in artifact.path:
            continue
        models: list[str] = []
        for prisma_model, drizzle_table in _SEEDED_MODEL.findall(artifact.content):
            model = prisma_model or drizzle_table
            if model and model not in models:
                models.append(model)
        result.append(SeedFile(path=artifact.path, models=models, size=artifact.size))
    return result


def classify_client_files(artifacts: list[Artifact]) -> list[ClientFile]:
    result = []
    for artifact in artifacts:
        path = artifact.path
        if "lib/database/" not in path or "schema.ts" in path or "seed.ts" in path:
            continue
        kind = ClientFileKind.CLIENT
        if "index.ts" in path:
            kind = ClientFileKind.HELPER
        elif "types.ts" in path:
            kind = ClientFileKind.TYPES
        result.append(ClientFile(path=path, type=kind, size=artifact.size))
    return result


# ═══════════════════════════════════════════════════════════════════════════
# FRONTEND ARTIFACTS
# ═══════════════════════════════════════════════════════════════════════════


def classify_components(artifacts: list[Artifact]) -> list[GeneratedComponent]:
    result = []
    for artifact in artifacts:
        if "components/" not in artifact.path:
            continue
        kind = ComponentKind.ORGANISM
        if "components/ui/" in artifact.path:
            kind = ComponentKind.ATOM
        elif "components/forms/" in artifact.path:
            kind = ComponentKind.MOLECULE
        result.append(GeneratedComponent(
            path=artifact.path,
            name=_stem(artifact.path),
            type=kind,
            is_client=_is_client(artifact.content),
            has_accessibility=bool(_ACCESSIBILITY.search(artifact.content)),
            size=artifact.size,
        ))
    return result


def page_route(path: str) -> str:
    """app/(auth)/login/page.tsx -> /login"""
    route = path.replace("app", "", 1).replace("/page.tsx", "")
    route = _ROUTE_GROUP.sub("", route).replace("//", "/")
    return route or "/"


def classify_pages(artifacts: list[Artifact]) -> list[GeneratedPage]:
    result = []
    for artifact in artifacts:
        if not artifact.path.endswith("/page.tsx"):
            continue
        directory = artifact.path[: -len("/page.tsx")]
        result.append(GeneratedPage(
            path=artifact.path,
            route=page_route(artifact.path),
            is_client=_is_client(artifact.content),
            layout=f"{directory}/layout.tsx",
            size=artifact.size,
        ))
    return result


def classify_providers(artifacts: list[Artifact]) -> list[GeneratedProvider]:
    result = []
    for artifact in artifacts:
        if "contexts/" not in artifact.path and "provider" not in artifact.path.lower():
            continue
        provides = [name for name in KNOWN_PROVIDES if name in artifact.content]
        result.append(GeneratedProvider(
            path=artifact.path,
            name=_stem(artifact.path),
            provides=provides,
            size=artifact.size,
        ))
    return result


# ═══════════════════════════════════════════════════════════════════════════
# BACKEND ARTIFACTS
# ═══════════════════════════════════════════════════════════════════════════


def api_endpoint(path: str) -> str:
    """app/api/todos/[id]/route.ts -> /api/todos/:id"""
    endpoint = path.replace("app/", "", 1).replace("/route.ts", "")
    endpoint = re.sub(r"\[(\w+)\]", r":\1", endpoint)
    return "/" + endpoint


def classify_api_routes(artifacts: list[Artifact]) -> list[GeneratedAPIRoute]:
    result = []
    for artifact in artifacts:
        if not artifact.path.startswith("app/api/"):
            continue
        content = artifact.content
        methods = [m for m in HTTP_METHODS if f"export async function {m}" in content]
        result.append(GeneratedAPIRoute(
            path=artifact.path,
            endpoint=api_endpoint(artifact.path),
            methods=methods,
            has_validation=_has_validation(content),
            has_auth="getCurrentUser" in content or "requireAuth" in content,
            size=artifact.size,
        ))
    return result


def classify_server_actions(artifacts: list[Artifact]) -> list[GeneratedServerAction]:
    return [
        GeneratedServerAction(
            path=a.path,
            name=_stem(a.path),
            has_validation=_has_validation(a.content),
            size=a.size,
        )
        for a in artifacts
        if a.path.startswith("lib/actions/")
    ]


def middleware_purpose(content: str) -> str:
    if "auth" in content or "session" in content:
        return "Authentication"
    if "cors" in content:
        return "CORS"
    if "log" in content:
        return "Logging"
    return "General"


def classify_middleware(artifacts: list[Artifact]) -> list[GeneratedMiddleware]:
    return [
        GeneratedMiddleware(
            path=a.path,
            name=_stem(a.path),
            purpose=middleware_purpose(a.content),
            size=a.size,
        )
        for a in artifacts
        if "middleware" in a.path.lower()
    ]


def classify_utilities(artifacts: list[Artifact]) -> list[GeneratedUtility]:
    prefixes = ("lib/utils/", "lib/validations/", "lib/auth/", "lib/database/")
    return [
        GeneratedUtility(
            path=a.path,
            name=_stem(a.path),
            functions=_EXPORTED_FUNCTION.findall(a.content),
            size=a.size,
        )
        for a in artifacts
        if a.path.startswith(prefixes)
    ]

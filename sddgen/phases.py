"""
sddgen Phases - The generation pipeline stages

Each phase is constructed once per run with the immutable RunConfig and the
oracle, receives a read-only mapping of the outputs it declared as inputs,
and returns a value of its declared output type (or raises).

    spec -> architecture -> [database] -> [frontend] -> [backend] -> config -> [repair]
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, ClassVar, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from sddgen import classify
from sddgen.artifacts import (
    Artifact,
    extract_code_blocks,
    extract_json,
    is_safe_relative_path,
    materialize,
    write_artifact,
)
from sddgen.config import RunConfig
from sddgen.diagnostics import DiagnosticsCollector
from sddgen.errors import ExtractionError, PhaseContractError, PhaseExecutionError
from sddgen.oracle import GenerationOracle
from sddgen.outputs import (
    ORM,
    BackendOutput,
    ConfigOutput,
    DatabaseOutput,
    DatabasePlan,
    FrontendOutput,
    GeneratedConfigFile,
)
from sddgen.rendering import kebab_case, load_instructions, render
from sddgen.repair import IterativeRepairLoop, RepairResult
from sddgen.spec import ArchitecturePlan, ParsedSpec

logger = logging.getLogger(__name__)

SPEC_SOURCE = "spec_source"

ModelT = TypeVar("ModelT", bound=BaseModel)


# ═══════════════════════════════════════════════════════════════════════════
# BASE
# ═══════════════════════════════════════════════════════════════════════════


class Phase(ABC):
    """One pipeline stage with declared inputs and output type."""

    name: ClassVar[str]
    requires: ClassVar[tuple[str, ...]] = ()
    optional: ClassVar[tuple[str, ...]] = ()
    output_type: ClassVar[type]

    def __init__(self, config: RunConfig, oracle: GenerationOracle | None = None):
        self.config = config
        self.oracle = oracle
        self._executed = False

    @property
    def input_keys(self) -> tuple[str, ...]:
        return self.requires + self.optional

    def execute(self, inputs: Mapping[str, Any]) -> Any:
        """Run the phase exactly once."""
        if self._executed:
            raise PhaseContractError(f"Phase '{self.name}' has already been executed")
        self._executed = True

        missing = [key for key in self.requires if inputs.get(key) is None]
        if missing:
            raise PhaseContractError(f"Phase '{self.name}' is missing inputs: {', '.join(missing)}")

        logger.info("Starting %s phase", self.name)
        return self.run(inputs)

    @abstractmethod
    def run(self, inputs: Mapping[str, Any]) -> Any:
        """Phase body; inputs holds only the declared keys."""

    def ask(self, prompt: str) -> str:
        """Send a prompt with this phase's system instructions."""
        if self.oracle is None:
            raise PhaseExecutionError(f"Phase '{self.name}' needs a generation oracle")
        logger.info("Requesting %s generation (%d prompt chars)", self.name, len(prompt))
        return self.oracle.generate(prompt, load_instructions(self.name))

    def project_path(self, architecture: ArchitecturePlan) -> Path:
        return self.config.project_path(architecture.project_name)

    def save_json(self, filename: str, model: BaseModel) -> Path:
        """Keep an intermediate payload in the temp dir for inspection."""
        path = self.config.temp_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            model.model_dump_json(by_alias=True, exclude_none=True, indent=2),
            encoding="utf-8",
        )
        logger.info("Output saved to: %s", path)
        return path


def parse_payload(response: str, model: type[ModelT]) -> ModelT:
    """Extract a JSON payload and validate it against a schema."""
    data = extract_json(response)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Response does not match {model.__name__}: {e}") from e


class CodeGenerationPhase(Phase):
    """Phase that asks for fenced code blocks and writes them to the project."""

    def generate_files(self, project_path: Path, prompt: str) -> list[Artifact]:
        response = self.ask(prompt)
        blocks = extract_code_blocks(response)
        logger.info("Extracted %d code blocks from response", len(blocks))
        if not blocks:
            logger.warning("%s phase produced no files", self.name)
        return materialize(project_path, blocks)


# ═══════════════════════════════════════════════════════════════════════════
# SPEC & ARCHITECTURE
# ═══════════════════════════════════════════════════════════════════════════


class SpecParsePhase(Phase):
    """Markdown spec -> ParsedSpec"""

    name = "spec"
    requires = (SPEC_SOURCE,)
    output_type = ParsedSpec

    def run(self, inputs: Mapping[str, Any]) -> ParsedSpec:
        spec_path = Path(inputs[SPEC_SOURCE])
        try:
            spec_content = spec_path.read_text(encoding="utf-8")
        except OSError as e:
            raise PhaseExecutionError(f"Failed to read spec file {spec_path}: {e}") from e
        logger.info("Spec file loaded (%d characters)", len(spec_content))

        response = self.ask(render("prompts/spec.md.j2", spec_content=spec_content))
        parsed = parse_payload(response, ParsedSpec)

        self.save_json("parsed-spec.json", parsed)
        logger.info(
            "Parsed spec: %s (%d features, %d data models)",
            parsed.project_name,
            len(parsed.features),
            len(parsed.data_models),
        )
        return parsed


class ArchitecturePhase(Phase):
    """ParsedSpec -> ArchitecturePlan"""

    name = "architecture"
    requires = ("spec",)
    output_type = ArchitecturePlan

    def run(self, inputs: Mapping[str, Any]) -> ArchitecturePlan:
        spec: ParsedSpec = inputs["spec"]
        prompt = render(
            "prompts/architecture.md.j2",
            parsed_spec=spec.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        architecture = parse_payload(self.ask(prompt), ArchitecturePlan)
        if not is_safe_relative_path(architecture.project_name):
            raise ExtractionError(
                f"Project name {architecture.project_name!r} would leave the output directory"
            )

        self.save_json("architecture.json", architecture)
        logger.info("Total files planned: %d", len(architecture.file_list))
        return architecture


# ═══════════════════════════════════════════════════════════════════════════
# DATABASE
# ═══════════════════════════════════════════════════════════════════════════


def plan_database(spec: ParsedSpec) -> DatabasePlan:
    """Prisma unless the spec asks for Drizzle; PostgreSQL unless it names a database."""
    stack = spec.tech_stack
    orm = ORM.PRISMA
    if ((stack.other or {}).get("orm") or "").lower() == ORM.DRIZZLE.value:
        orm = ORM.DRIZZLE

    return DatabasePlan(
        orm=orm,
        database=(stack.database or "postgresql").lower(),
        models=[m.name for m in spec.data_models],
    )


class DatabasePhase(CodeGenerationPhase):
    name = "database"
    requires = ("spec", "architecture")
    output_type = DatabaseOutput

    def run(self, inputs: Mapping[str, Any]) -> DatabaseOutput:
        spec: ParsedSpec = inputs["spec"]
        project_path = self.project_path(inputs["architecture"])

        if not spec.data_models:
            logger.info("No data models found. Skipping database generation.")
            return DatabaseOutput(project_path=project_path)

        plan = plan_database(spec)
        logger.info(
            "Database plan: orm=%s database=%s models=%d",
            plan.orm.value,
            plan.database,
            len(plan.models),
        )

        prompt = render(
            "prompts/database.md.j2",
            spec=spec,
            plan=plan,
            data_models=[m.model_dump(mode="json", exclude_none=True) for m in spec.data_models],
        )
        artifacts = self.generate_files(project_path, prompt)

        output = DatabaseOutput(
            project_path=project_path,
            schema_files=classify.classify_schema_files(artifacts, plan.orm),
            migration_files=classify.classify_migration_files(artifacts),
            seed_files=classify.classify_seed_files(artifacts),
            client_files=classify.classify_client_files(artifacts),
            files_generated=len(artifacts),
        )
        logger.info(
            "Generated %d database files (schema=%d, migrations=%d, seeds=%d, clients=%d)",
            output.files_generated,
            len(output.schema_files),
            len(output.migration_files),
            len(output.seed_files),
            len(output.client_files),
        )
        return output


# ═══════════════════════════════════════════════════════════════════════════
# FRONTEND & BACKEND
# ═══════════════════════════════════════════════════════════════════════════


class FrontendPhase(CodeGenerationPhase):
    name = "frontend"
    requires = ("spec", "architecture")
    output_type = FrontendOutput

    def run(self, inputs: Mapping[str, Any]) -> FrontendOutput:
        spec: ParsedSpec = inputs["spec"]
        architecture: ArchitecturePlan = inputs["architecture"]
        project_path = self.project_path(architecture)

        files = classify.filter_frontend_files(architecture.file_list)
        logger.info("Frontend files to generate: %d", len(files))
        if not files:
            return FrontendOutput(project_path=project_path)

        plan = classify.plan_components(files)
        prompt = render("prompts/frontend.md.j2", spec=spec, plan=plan, files=files)
        artifacts = self.generate_files(project_path, prompt)

        output = FrontendOutput(
            project_path=project_path,
            components=classify.classify_components(artifacts),
            pages=classify.classify_pages(artifacts),
            providers=classify.classify_providers(artifacts),
            files_generated=len(artifacts),
        )
        logger.info(
            "Generated %d frontend files (components=%d, pages=%d, providers=%d)",
            output.files_generated,
            len(output.components),
            len(output.pages),
            len(output.providers),
        )
        return output


class BackendPhase(CodeGenerationPhase):
    name = "backend"
    requires = ("spec", "architecture")
    output_type = BackendOutput

    def run(self, inputs: Mapping[str, Any]) -> BackendOutput:
        spec: ParsedSpec = inputs["spec"]
        architecture: ArchitecturePlan = inputs["architecture"]
        project_path = self.project_path(architecture)

        files = classify.filter_backend_files(architecture.file_list)
        logger.info("Backend files to generate: %d", len(files))
        if not files:
            return BackendOutput(project_path=project_path)

        plan = classify.plan_backend_files(files)
        prompt = render("prompts/backend.md.j2", spec=spec, plan=plan, files=files)
        artifacts = self.generate_files(project_path, prompt)

        output = BackendOutput(
            project_path=project_path,
            api_routes=classify.classify_api_routes(artifacts),
            server_actions=classify.classify_server_actions(artifacts),
            middleware=classify.classify_middleware(artifacts),
            utilities=classify.classify_utilities(artifacts),
            files_generated=len(artifacts),
        )
        logger.info(
            "Generated %d backend files (routes=%d, actions=%d, middleware=%d, utilities=%d)",
            output.files_generated,
            len(output.api_routes),
            len(output.server_actions),
            len(output.middleware),
            len(output.utilities),
        )
        return output


# ═══════════════════════════════════════════════════════════════════════════
# CONFIG (template based, no oracle)
# ═══════════════════════════════════════════════════════════════════════════


def detect_orm(spec: ParsedSpec, database: DatabaseOutput | None) -> ORM | None:
    """ORM the database phase produced, else the one the tech stack names."""
    if database is not None and database.orm is not None:
        return database.orm
    preference = ((spec.tech_stack.other or {}).get("orm") or "").lower()
    for orm in ORM:
        if preference == orm.value:
            return orm
    return None


class ConfigPhase(Phase):
    """Writes package.json, tsconfig.json and the other project config files."""

    name = "config"
    requires = ("spec", "architecture")
    optional = ("database",)
    output_type = ConfigOutput

    def run(self, inputs: Mapping[str, Any]) -> ConfigOutput:
        spec: ParsedSpec = inputs["spec"]
        architecture: ArchitecturePlan = inputs["architecture"]
        project_path = self.project_path(architecture)
        orm = detect_orm(spec, inputs.get("database"))
        if orm:
            logger.info("Using ORM: %s", orm.value)

        stack = spec.tech_stack
        tailwind = "tailwind" in stack.styling.lower()
        package_json = self._package_json(spec, architecture, orm, tailwind)

        files: dict[str, str] = {
            "package.json": json.dumps(package_json, indent=2) + "\n",
            "tsconfig.json": json.dumps(self._tsconfig(), indent=2) + "\n",
            "next.config.js": render("config/next.config.js.j2"),
        }
        if tailwind:
            files["tailwind.config.ts"] = render("config/tailwind.config.ts.j2")
            files["postcss.config.js"] = render("config/postcss.config.js.j2")
        files[".gitignore"] = render("config/gitignore.j2", orm=orm.value if orm else None)
        files[".env.example"] = render(
            "config/env.example.j2",
            database=(stack.database or "").lower(),
            authentication=(stack.authentication or "").lower(),
        )
        files["README.md"] = render(
            "config/README.md.j2",
            spec=spec,
            orm=orm.value if orm else None,
            scripts=package_json["scripts"],
        )
        files[".eslintrc.json"] = json.dumps({"extends": "next/core-web-vitals"}, indent=2) + "\n"

        config_files = [
            GeneratedConfigFile(path=artifact.path, size=artifact.size)
            for artifact in (
                write_artifact(project_path, path, content) for path, content in files.items()
            )
        ]
        logger.info("Generated %d config files", len(config_files))
        return ConfigOutput(
            project_path=project_path,
            config_files=config_files,
            files_generated=len(config_files),
        )

    def _package_json(
        self,
        spec: ParsedSpec,
        architecture: ArchitecturePlan,
        orm: ORM | None,
        tailwind: bool,
    ) -> dict[str, Any]:
        """package.json: planned dependencies plus the ones the generated code needs."""

        deps: dict[str, str] = dict(architecture.dependencies.dependencies)
        dev_deps: dict[str, str] = dict(architecture.dependencies.dev_dependencies)

        deps.update({
            "next": "^14.0.0",
            "react": "^18.0.0",
            "react-dom": "^18.0.0",
            "zod": "^3.22.0",
        })
        dev_deps.update({
            "typescript": "^5.0.0",
            "@types/node": "^20.0.0",
            "@types/react": "^18.0.0",
            "@types/react-dom": "^18.0.0",
            "eslint": "^8.0.0",
            "eslint-config-next": "^14.0.0",
        })
        scripts: dict[str, str] = {
            "dev": "next dev",
            "build": "next build",
            "start": "next start",
            "lint": "next lint",
            "typecheck": "tsc --noEmit",
        }

        if tailwind:
            dev_deps.update({
                "tailwindcss": "^3.4.0",
                "autoprefixer": "^10.4.0",
                "postcss": "^8.4.0",
            })

        if orm == ORM.PRISMA:
            deps["@prisma/client"] = "^5.0.0"
            dev_deps["prisma"] = "^5.0.0"
            dev_deps["tsx"] = "^4.7.0"
            scripts["db:generate"] = "prisma generate"
            scripts["db:push"] = "prisma db push"
            scripts["db:migrate"] = "prisma migrate dev"
            scripts["db:seed"] = "tsx prisma/seed.ts"
        elif orm == ORM.DRIZZLE:
            deps["drizzle-orm"] = "^0.29.0"
            deps["postgres"] = "^3.4.0"
            dev_deps["drizzle-kit"] = "^0.20.0"
            dev_deps["tsx"] = "^4.7.0"
            scripts["db:generate"] = "drizzle-kit generate:pg"
            scripts["db:push"] = "drizzle-kit push:pg"
            scripts["db:seed"] = "tsx lib/database/seed.ts"
        elif "supabase" in (spec.tech_stack.database or "").lower():
            deps["@supabase/supabase-js"] = "^2.0.0"
            deps["@supabase/ssr"] = "^0.0.10"

        return {
            "name": kebab_case(spec.project_name),
            "version": "0.1.0",
            "private": True,
            "description": spec.description,
            "scripts": scripts,
            "dependencies": deps,
            "devDependencies": dev_deps,
            "engines": {"node": ">=18.17.0"},
        }

    def _tsconfig(self) -> dict[str, Any]:
        return {
            "compilerOptions": {
                "target": "ES2017",
                "lib": ["dom", "dom.iterable", "esnext"],
                "allowJs": True,
                "skipLibCheck": True,
                "strict": True,
                "noEmit": True,
                "esModuleInterop": True,
                "module": "esnext",
                "moduleResolution": "bundler",
                "resolveJsonModule": True,
                "isolatedModules": True,
                "jsx": "preserve",
                "incremental": True,
                "plugins": [{"name": "next"}],
                "paths": {"@/*": ["./*"]},
            },
            "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
            "exclude": ["node_modules"],
        }


# ═══════════════════════════════════════════════════════════════════════════
# REPAIR
# ═══════════════════════════════════════════════════════════════════════════


class RepairPhase(Phase):
    """Runs the iterative repair loop over the finished project."""

    name = "repair"
    requires = ("architecture", "config")
    output_type = RepairResult

    def __init__(
        self,
        config: RunConfig,
        oracle: GenerationOracle | None = None,
        collector: DiagnosticsCollector | None = None,
    ):
        super().__init__(config, oracle)
        self.collector = collector or DiagnosticsCollector.create(
            check_types=config.check_types,
            check_lint=config.check_lint,
            timeout=config.checker_timeout,
        )

    def run(self, inputs: Mapping[str, Any]) -> RepairResult:
        if self.oracle is None:
            raise PhaseExecutionError("Repair phase needs a generation oracle")
        loop = IterativeRepairLoop(
            self.collector,
            self.oracle,
            max_attempts=self.config.max_fix_attempts,
        )
        return loop.run(self.project_path(inputs["architecture"]))


def default_phases(config: RunConfig, oracle: GenerationOracle) -> list[Phase]:
    """The statically declared pipeline for a config."""
    phases: list[Phase] = [SpecParsePhase(config, oracle), ArchitecturePhase(config, oracle)]
    if config.with_database:
        phases.append(DatabasePhase(config, oracle))
    if config.with_frontend:
        phases.append(FrontendPhase(config, oracle))
    if config.with_backend:
        phases.append(BackendPhase(config, oracle))
    phases.append(ConfigPhase(config))
    if config.fix:
        phases.append(RepairPhase(config, oracle))
    return phases

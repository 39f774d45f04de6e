"""Project profile heuristics: metadata, frameworks, layout and entry points."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Set

import toml

from .models import FileInventory, ProjectProfile

logger = logging.getLogger(__name__)

# dependency name -> framework label
JS_FRAMEWORKS: Dict[str, str] = {
    "react": "React",
    "vue": "Vue.js",
    "@angular/core": "Angular",
    "express": "Express",
    "fastify": "Fastify",
    "next": "Next.js",
    "nuxt": "Nuxt.js",
    "svelte": "Svelte",
    "typescript": "TypeScript",
    "jest": "Jest",
    "vitest": "Vitest",
    "webpack": "Webpack",
    "vite": "Vite",
    "@modelcontextprotocol/sdk": "Model Context Protocol",
}

PY_FRAMEWORKS: Dict[str, str] = {
    "django": "Django",
    "flask": "Flask",
    "fastapi": "FastAPI",
    "starlette": "Starlette",
    "typer": "Typer",
    "click": "Click",
    "pydantic": "Pydantic",
    "sqlalchemy": "SQLAlchemy",
    "celery": "Celery",
    "pytest": "pytest",
    "numpy": "NumPy",
    "pandas": "pandas",
    "torch": "PyTorch",
    "networkx": "NetworkX",
    "aiohttp": "aiohttp",
}

# root file -> framework label
CONFIG_FRAMEWORKS: Dict[str, str] = {
    "next.config.js": "Next.js",
    "next.config.ts": "Next.js",
    "nuxt.config.js": "Nuxt.js",
    "nuxt.config.ts": "Nuxt.js",
    "angular.json": "Angular",
    "svelte.config.js": "Svelte",
    "tsconfig.json": "TypeScript",
    "jest.config.js": "Jest",
    "jest.config.ts": "Jest",
    "vite.config.js": "Vite",
    "vite.config.ts": "Vite",
    "webpack.config.js": "Webpack",
    "manage.py": "Django",
    "pytest.ini": "pytest",
    "conftest.py": "pytest",
}

ROOT_FILE_PATTERNS: Dict[str, str] = {
    "package.json": "npm package",
    "yarn.lock": "Yarn dependency management",
    "pnpm-lock.yaml": "pnpm dependency management",
    "pyproject.toml": "Python packaging (pyproject)",
    "setup.py": "Python packaging (setuptools)",
    "requirements.txt": "pip requirements",
    "poetry.lock": "Poetry dependency management",
    "Dockerfile": "Docker containerization",
    "docker-compose.yml": "Docker Compose orchestration",
    ".env": "Environment configuration",
    ".env.example": "Environment configuration",
    ".gitignore": "Git version control",
    "README.md": "Project documentation",
    "LICENSE": "Open source licensing",
    ".github": "GitHub workflows",
    "tsconfig.json": "TypeScript configuration",
    "eslint.config.js": "ESLint code quality",
    ".eslintrc.json": "ESLint code quality",
    ".prettierrc": "Prettier code formatting",
    "ruff.toml": "Ruff linting",
}

ENTRY_FILES = (
    "index.js", "index.ts", "app.js", "app.ts", "server.js", "server.ts",
    "main.py", "app.py", "manage.py", "__main__.py", "cli.py", "wsgi.py", "asgi.py",
)
_CONFIG_EXTENSIONS = (".json", ".js", ".ts", ".yml", ".yaml", ".toml", ".ini", ".cfg")
_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9_.\-]+)")


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.debug("Ignoring %s: top level is not an object", path)
        return {}
    return data


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        return toml.loads(path.read_text(encoding="utf-8"))
    except (OSError, toml.TomlDecodeError) as exc:
        logger.debug("Ignoring %s: %s", path, exc)
        return {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _requirement_names(lines: List[str]) -> List[str]:
    names = []
    for line in lines:
        if not isinstance(line, str):
            continue
        line = line.strip()
        if not line or line.startswith(("#", "-")):
            continue
        match = _REQUIREMENT_NAME.match(line)
        if match:
            names.append(match.group(1).lower().replace("_", "-"))
    return names


def _read_metadata(root: Path) -> Dict[str, Any]:
    """Collect name/version/description/dependencies from packaging files."""
    meta: Dict[str, Any] = {"dependencies": [], "scripts": [], "module_type": ""}

    package_json = root / "package.json"
    if package_json.is_file():
        pkg = _read_json(package_json)
        for key in ("name", "version", "description"):
            if isinstance(pkg.get(key), str):
                meta.setdefault(key, pkg[key])
        for section in ("dependencies", "devDependencies"):
            if isinstance(pkg.get(section), dict):
                meta["dependencies"].extend(pkg[section])
        if isinstance(pkg.get("main"), str):
            meta["scripts"].append(pkg["main"])
        if isinstance(pkg.get("type"), str):
            meta["module_type"] = pkg["type"]

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        project = _read_toml(pyproject).get("project")
        if not isinstance(project, dict):
            project = {}
        for key in ("name", "version", "description"):
            if isinstance(project.get(key), str):
                meta.setdefault(key, project[key])
        meta["dependencies"].extend(_requirement_names(_as_list(project.get("dependencies"))))
        extras = project.get("optional-dependencies")
        for extra in (extras.values() if isinstance(extras, dict) else ()):
            meta["dependencies"].extend(_requirement_names(_as_list(extra)))
        scripts = project.get("scripts")
        if isinstance(scripts, dict):
            meta["scripts"].extend(f"{k} = {v}" for k, v in scripts.items())

    requirements = root / "requirements.txt"
    if requirements.is_file():
        try:
            lines = requirements.read_text(encoding="utf-8").splitlines()
        except OSError:
            lines = []
        meta["dependencies"].extend(_requirement_names(lines))

    return meta


def detect_frameworks(root_entries: List[str], dependencies: List[str]) -> List[str]:
    frameworks: List[str] = []

    def add(label: str) -> None:
        if label not in frameworks:
            frameworks.append(label)

    deps = {d.lower() for d in dependencies}
    for name, label in (*JS_FRAMEWORKS.items(), *PY_FRAMEWORKS.items()):
        if name in deps:
            add(label)
    for filename, label in CONFIG_FRAMEWORKS.items():
        if filename in root_entries:
            add(label)
    if "package.json" in root_entries and not {"React", "Vue.js", "Angular"} & set(frameworks):
        add("Node.js")
    if {"pyproject.toml", "setup.py", "requirements.txt"} & set(root_entries):
        add("Python")
    return frameworks


def detect_architecture(directories: List[str], root_entries: List[str]) -> List[str]:
    names: Set[str] = {d.rsplit("/", 1)[-1] for d in directories}
    patterns = []
    if {"src", "lib"} & names:
        patterns.append("Source Directory Structure")
    if "components" in names or any("component" in n for n in names):
        patterns.append("Component-Based Architecture")
    if {"services", "api"} & names:
        patterns.append("Service Layer Pattern")
    if {"utils", "helpers"} & names:
        patterns.append("Utility Module Pattern")
    if {"types", "interfaces"} & names:
        patterns.append("Type Definition Organization")
    if {"test", "tests", "__tests__"} & names:
        patterns.append("Test Directory Structure")
    if {"Dockerfile", "docker-compose.yml"} & set(root_entries):
        patterns.append("Containerized Deployment")
    return patterns


def detect_patterns(root_entries: List[str]) -> List[str]:
    patterns: List[str] = []
    for filename, label in ROOT_FILE_PATTERNS.items():
        if filename in root_entries and label not in patterns:
            patterns.append(label)
    return patterns


def detect_config_files(root_entries: List[str]) -> List[str]:
    known = {"tsconfig.json", "package.json", "pyproject.toml", "setup.cfg", "tox.ini"}
    return sorted(
        name for name in root_entries
        if name in known
        or (name.endswith(_CONFIG_EXTENSIONS) and ("config" in name or "rc" in name))
    )


def _project_type(frameworks: List[str], dependencies: List[str], module_type: str) -> str:
    project_type = "Unknown"
    if module_type == "module" or "Node.js" in frameworks:
        project_type = "Node.js Project"
    if {"React", "Vue.js", "Angular"} & set(frameworks):
        project_type = "Frontend Application"
    if {"Express", "Fastify"} & set(frameworks):
        project_type = "Backend API"
    if "TypeScript" in frameworks:
        project_type = "TypeScript Project"
    if "Python" in frameworks:
        project_type = "Python Project"
    if {"Django", "Flask", "FastAPI", "Starlette"} & set(frameworks):
        project_type = "Python Web Service"
    if {"Typer", "Click"} & set(frameworks):
        project_type = "Python CLI"
    if "@modelcontextprotocol/sdk" in dependencies:
        project_type = "MCP Server"
    return project_type


def _complexity(total_files: int) -> str:
    if total_files > 50:
        return "High"
    if total_files > 20:
        return "Medium"
    return "Low"


def build_profile(root: Path, inventory: FileInventory) -> ProjectProfile:
    """Synchronous profile builder; see :func:`analyze_project_profile`."""
    try:
        root_entries = sorted(p.name for p in root.iterdir())
    except OSError as exc:
        logger.warning("Cannot list %s: %s", root, exc)
        root_entries = list(inventory.root_files)

    meta = _read_metadata(root)
    dependencies = sorted(set(meta["dependencies"]))
    frameworks = detect_frameworks(root_entries, dependencies)

    entry_points = [name for name in ENTRY_FILES if name in root_entries]
    entry_points.extend(
        f.relative_path for f in inventory.files
        if "/" in f.relative_path and f.relative_path.rsplit("/", 1)[-1] in ("__main__.py", "main.py", "index.ts")
    )
    entry_points.extend(meta["scripts"])

    return ProjectProfile(
        name=meta.get("name") or root.name,
        project_type=_project_type(frameworks, dependencies, meta["module_type"]),
        description=meta.get("description") or "A software project",
        version=meta.get("version") or "1.0.0",
        frameworks=frameworks,
        dependencies=dependencies,
        directories=list(inventory.directories),
        root_files=root_entries,
        entry_points=entry_points,
        config_files=detect_config_files(root_entries),
        architecture_patterns=detect_architecture(inventory.directories, root_entries),
        key_patterns=detect_patterns(root_entries),
        complexity=_complexity(len(inventory.files)),
    )


async def analyze_project_profile(root: Path, inventory: FileInventory) -> ProjectProfile:
    return await asyncio.to_thread(build_profile, root, inventory)

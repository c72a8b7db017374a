"""
Export Service — runnable code scaffolds for a project.

Functions:
    - export_options:     Supported stacks and target platforms
    - create_export:      Generate files, zip them into object storage
    - list_exports / get_export_for_user / delete_export
    - read_archive:       Zip bytes of a completed export
    - push_export:        Push the files to GitHub or GitLab

Lifecycle: pending → generating → completed | failed. Generation failures
are recorded on the export (error_message) and never raised to the caller.
"""

import io
import json
import logging
import zipfile

from sqlalchemy import select

from app.ai import generators
from app.core.exceptions import LLMUnavailableError, NotFoundError, ValidationError
from app.integrations.git_host_gateway import build_git_host_gateway
from app.integrations.object_storage import get_storage
from app.models import db
from app.models.export import EXPORT_PLATFORMS, EXPORT_STACKS, ProjectExport
from app.services.project_service import get_project_for_user

logger = logging.getLogger(__name__)

UNAVAILABLE_PLATFORMS = ("replit",)
PUSH_PROVIDERS = ("github", "gitlab")

_PLATFORM_LABELS = {
    "zip": ("Download ZIP", "Download the project as a ZIP archive"),
    "github": ("GitHub", "Create a GitHub repository"),
    "gitlab": ("GitLab", "Create a GitLab project"),
    "replit": ("Replit", "Export to Replit (coming soon)"),
}


def export_options():
    return {
        "stacks": [{"id": key, "name": label} for key, label in EXPORT_STACKS.items()],
        "platforms": [
            {
                "id": platform,
                "name": _PLATFORM_LABELS[platform][0],
                "description": _PLATFORM_LABELS[platform][1],
                "available": platform not in UNAVAILABLE_PLATFORMS,
            }
            for platform in EXPORT_PLATFORMS
        ],
    }


def agent_instructions(project, stack):
    """Markdown context file for AI coding agents working on the export."""
    briefing = project.briefing
    scope = project.scope
    lines = [
        f"# AI Agent Instructions - {project.name}",
        "",
        "This file gives AI coding agents (Cursor, Devin, Windsurf, ...) the project context.",
        "",
        "## Project",
        "",
        f"**Name:** {project.name}",
        f"**Stack:** {EXPORT_STACKS.get(stack, stack)}",
        "**Status:** Ready for development",
        "",
    ]
    if briefing is not None:
        lines += [
            "## Briefing",
            "",
            f"**Business objective:** {briefing.business_objective or 'Not defined'}",
            f"**Target audience:** {briefing.target_audience or 'Not defined'}",
            "",
        ]
    if scope is not None:
        lines += ["## Scope", "", f"**Objective:** {scope.objective or 'Not defined'}", ""]
        lines += [f"- {d}" for d in scope.deliverables or []]
        lines.append("")
    if project.roadmap is not None and project.roadmap.phases:
        lines += ["## Roadmap", ""]
        lines += [f"- {p.get('name')}" for p in project.roadmap.phases if isinstance(p, dict)]
        lines.append("")
    lines += [
        "## Working on this project",
        "",
        "1. Read this file and the README before changing code.",
        "2. Install dependencies and start the dev server as described in the README.",
        "3. Keep changes within the agreed scope; raise anything out of scope with the team.",
        "",
    ]
    return "\n".join(lines)


def _zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        for path, content in files.items():
            archive.writestr(path, content)
    return buf.getvalue()


def _fail_export(export, message):
    db.session.rollback()
    export.status = "failed"
    export.error_message = message[:1000]
    db.session.commit()
    return export


def create_export(project, user_id, data):
    stack = data.get("stack") or "react-vite"
    if stack not in EXPORT_STACKS:
        raise ValidationError(f"stack must be one of: {', '.join(EXPORT_STACKS)}", details={"stack": "invalid"})
    platform = data.get("target_platform") or "zip"
    if platform not in EXPORT_PLATFORMS:
        raise ValidationError(f"target_platform must be one of: {', '.join(EXPORT_PLATFORMS)}")
    if platform in UNAVAILABLE_PLATFORMS:
        raise ValidationError(f"{platform} exports are not available yet", details={"target_platform": platform})

    export = ProjectExport(
        project_id=project.id,
        user_id=user_id,
        name=f"{project.name} - {stack} Export"[:255],
        target_platform=platform,
        status="pending",
        stack=stack,
        framework=EXPORT_STACKS[stack],
        meta={},
    )
    db.session.add(export)
    db.session.commit()

    export.status = "generating"
    db.session.commit()
    try:
        structure = generators.generate_project_structure(
            project, project.briefing, project.scope, project.roadmap, stack=stack, user_id=user_id
        )
        files = {
            **structure["files"],
            **structure["config_files"],
            "README.md": structure["readme"],
            "package.json": json.dumps(structure["package_json"], indent=2),
            ".agent-instructions.md": agent_instructions(project, stack),
        }
        key = f"exports/{export.id}/{stack}-export.zip"
        get_storage().put(key, _zip(files), "application/zip")
    except (LLMUnavailableError, OSError) as exc:
        logger.warning("Export %s failed: %s", export.id, exc)
        return _fail_export(export, str(exc))
    except Exception as exc:
        logger.exception("Export %s failed unexpectedly", export.id)
        return _fail_export(export, f"Export generation failed: {exc}")

    export.file_tree = structure["file_tree"] or sorted(files)
    export.files = files
    export.package_json = structure["package_json"]
    export.config_files = structure["config_files"]
    export.readme_content = structure["readme"]
    export.zip_url = key
    export.status = "completed"
    db.session.commit()
    logger.info("Export %s completed for project %s (%d files)", export.id, project.id, len(files))
    return export


def list_exports(project, status=None):
    stmt = select(ProjectExport).where(ProjectExport.project_id == project.id)
    if status:
        stmt = stmt.where(ProjectExport.status == status)
    stmt = stmt.order_by(ProjectExport.created_at.desc(), ProjectExport.id.desc())
    return db.session.execute(stmt).scalars().all()


def get_export_for_user(export_id, user_id):
    export = db.session.get(ProjectExport, export_id)
    if not export:
        raise NotFoundError(resource="Export", resource_id=export_id)
    get_project_for_user(export.project_id, user_id)
    return export


def delete_export(export):
    if export.zip_url:
        get_storage().delete(export.zip_url)
    db.session.delete(export)
    db.session.commit()


def read_archive(export):
    """(filename, zip bytes); 400 unless the export completed."""
    if export.status != "completed":
        raise ValidationError("Export has not completed")
    storage = get_storage()
    if export.zip_url and storage.exists(export.zip_url):
        data = storage.get(export.zip_url)
    else:
        data = _zip(export.files or {})
    return f"{export.stack}-export.zip", data


def push_export(export, provider, data):
    """Push a completed export; returns (ok, payload dict)."""
    if provider not in PUSH_PROVIDERS:
        raise ValidationError(f"provider must be one of: {', '.join(PUSH_PROVIDERS)}")
    token = data.get("token")
    repo_name = (data.get("repo_name") or "").strip()
    if not token or not repo_name:
        raise ValidationError("token and repo_name are required")
    if export.status != "completed":
        raise ValidationError("Export has not completed")

    result = build_git_host_gateway(provider).push(
        token, repo_name, export.files or {},
        private=bool(data.get("private", False)),
        description=data.get("description") or export.name,
    )
    meta = dict(export.meta or {})
    meta[f"{provider}_push"] = result.to_dict()
    export.meta = meta
    if result.ok:
        export.external_url = result.url
        export.target_platform = provider
    db.session.commit()
    return result.ok, result.to_dict()

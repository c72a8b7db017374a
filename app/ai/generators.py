"""
ClientForge
AI content generators.

One function per artefact. Each builds a prompt from project context, sends
it through LLMGateway with a ``purpose`` tag, parses the reply (code fences
tolerated) and falls back to a usable default when the reply does not parse.
LLMUnavailableError is NOT caught here; services decide whether a missing
provider is fatal (briefing chat) or has a default (proposal phases).
"""

import json
import logging
import re

from app.ai.gateway import LLMGateway
from app.models.export import EXPORT_STACKS
from app.models.planning import SCOPE_FIELDS

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════════
# Helpers
# ═════════════════════════════════════════════════════════════════════════════

def parse_json(content):
    """Parse an LLM reply as JSON. Returns None when nothing parses."""
    if not content:
        return None
    cleaned = content.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```$", "", cleaned)

    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    for pattern in (r"\{.*\}", r"\[.*\]"):
        match = re.search(pattern, cleaned, re.DOTALL)
        if match:
            try:
                return json.loads(match.group())
            except json.JSONDecodeError:
                continue
    return None


def _strip_fences(content):
    cleaned = (content or "").strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```$", "", cleaned)
    return cleaned


def _context(project, briefing=None, scope=None, roadmap=None):
    parts = [f"Project: {project.name}"]
    if project.description:
        parts.append(f"Description: {project.description}")
    if briefing is not None:
        b = briefing.to_dict()
        b.pop("conversation", None)
        b.pop("audio_recordings", None)
        parts.append("Briefing:\n" + json.dumps(b, indent=2, default=str))
    if scope is not None:
        parts.append("Scope:\n" + json.dumps(scope.to_dict(), indent=2, default=str))
    if roadmap is not None:
        parts.append("Roadmap:\n" + json.dumps(roadmap.to_dict(), indent=2, default=str))
    return "\n\n".join(parts)


def _ask(system, prompt, purpose, user_id=None, history=None):
    messages = [{"role": "system", "content": system}]
    messages.extend(history or [])
    messages.append({"role": "user", "content": prompt})
    return LLMGateway().chat(messages, purpose, user_id=user_id)["content"]


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def as_int(value, default=0):
    """Whole number from an LLM value; ``default`` for "40h", None, lists and the like."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return default
    try:
        return int(float(value.strip()) if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        return default


# ═════════════════════════════════════════════════════════════════════════════
# Briefing
# ═════════════════════════════════════════════════════════════════════════════

BRIEFING_SYSTEM = """You are a project intake assistant interviewing an agency client.
Ask one question at a time until these fields are known: project_type,
business_objective, target_audience, market_niche, desired_scope,
success_criteria, stack, deadline_text, budget.
Reply ONLY with JSON:
{"message": "<your next reply>", "extracted_data": {"<field>": "<value>"},
 "is_complete": <true when every field is known>, "current_field": "<field being asked>"}"""


def chat_briefing(project, briefing, message, user_id=None, questions=None):
    history = [
        {"role": m.get("role"), "content": m.get("content", "")}
        for m in (briefing.conversation or [])
        if m.get("role") in ("user", "assistant")
    ]
    known = {k: v for k, v in briefing.to_dict().items() if v and k not in ("conversation", "audio_recordings")}
    prompt = f"Known so far:\n{json.dumps(known, default=str)}\n\nClient says: {message}"
    if questions:
        guide = "\n".join(f"- {q['field']}: {q['question']}" for q in questions)
        prompt = f"Cover these template questions in order:\n{guide}\n\n{prompt}"
    content = _ask(BRIEFING_SYSTEM, prompt, "briefing_chat", user_id, history)

    parsed = parse_json(content)
    if not isinstance(parsed, dict):
        return {
            "message": _strip_fences(content),
            "extracted_data": {},
            "is_complete": False,
            "current_field": briefing.current_field,
        }
    extracted = parsed.get("extracted_data")
    return {
        "message": parsed.get("message") or "",
        "extracted_data": extracted if isinstance(extracted, dict) else {},
        "is_complete": bool(parsed.get("is_complete")),
        "current_field": parsed.get("current_field") or briefing.current_field,
    }


DEFAULT_STYLE = {
    "colors": ["#DE3403", "#FBBD23"],
    "typography": "Inter for UI text, Georgia for headings",
    "style": "Modern with vibrant colors",
}


def extract_style(url, description=None, user_id=None):
    """Visual style notes for a reference image."""
    system = (
        "You are a brand designer. Describe the visual style of the referenced image. "
        'Reply ONLY with JSON: {"colors": ["#RRGGBB"], "typography": "...", "style": "...", "mood": "..."}'
    )
    prompt = f"Image URL: {url}\nClient notes: {description or 'none'}"
    parsed = parse_json(_ask(system, prompt, "style_extraction", user_id))
    if not isinstance(parsed, dict):
        return dict(DEFAULT_STYLE)
    return {**DEFAULT_STYLE, **{k: v for k, v in parsed.items() if v}}


def transcribe_audio(audio, filename, mime_type=None, user_id=None):
    return LLMGateway().transcribe(audio, filename, mime_type, user_id=user_id)


# ═════════════════════════════════════════════════════════════════════════════
# Scope / roadmap / technical doc / AI command
# ═════════════════════════════════════════════════════════════════════════════

def generate_scope(project, briefing, user_id=None):
    system = (
        "You are a software scoping specialist. Reply ONLY with JSON with keys "
        "objective (string), deliverables, out_of_scope, assumptions, dependencies, risks (lists of strings)."
    )
    parsed = parse_json(_ask(system, _context(project, briefing), "scope", user_id))
    if not isinstance(parsed, dict):
        logger.warning("Scope reply for project %s did not parse; using briefing defaults", project.id)
        parsed = {}
    scope = {"objective": parsed.get("objective") or (briefing.business_objective if briefing else None)}
    for field in SCOPE_FIELDS[1:]:
        scope[field] = [str(v) for v in _as_list(parsed.get(field))]
    if not scope["deliverables"] and briefing is not None and briefing.desired_scope:
        scope["deliverables"] = [briefing.desired_scope]
    return scope


def generate_roadmap(project, briefing, scope=None, user_id=None):
    system = (
        "You are a delivery planner. Reply ONLY with JSON: "
        '{"phases": [{"name": "...", "duration": "...", "deliverables": ["..."]}], '
        '"milestones": [{"name": "...", "week": 1, "description": "..."}]}'
    )
    parsed = parse_json(_ask(system, _context(project, briefing, scope), "roadmap", user_id))
    if not isinstance(parsed, dict):
        return {"phases": [], "milestones": []}
    return {
        "phases": _as_list(parsed.get("phases")),
        "milestones": _as_list(parsed.get("milestones")),
    }


DEFAULT_CHECKLISTS = {
    "technical": [
        "Confirm hosting and environments",
        "Define repository and branching strategy",
        "Set up CI pipeline",
        "Agree on coding standards",
    ],
    "commercial": [
        "Approve proposal and budget",
        "Agree payment milestones",
        "Confirm change-request process",
    ],
    "legal": [
        "Sign service agreement",
        "Review data protection obligations",
        "Confirm intellectual property terms",
    ],
    "delivery": [
        "Agree acceptance criteria per deliverable",
        "Schedule client review sessions",
        "Prepare handover documentation",
    ],
    "validation": [
        "Client sign-off on scope",
        "User acceptance testing completed",
        "Production go-live approved",
    ],
}


def generate_checklists(project, briefing, scope=None, user_id=None):
    """{checklist_type: [item text]} for every type, defaults filling gaps."""
    system = (
        "You are a project manager. Reply ONLY with JSON mapping each of "
        "technical, commercial, legal, delivery, validation to a list of checklist items."
    )
    parsed = parse_json(_ask(system, _context(project, briefing, scope), "checklists", user_id))
    result = {}
    for checklist_type, defaults in DEFAULT_CHECKLISTS.items():
        items = parsed.get(checklist_type) if isinstance(parsed, dict) else None
        items = [str(i) for i in items if i] if isinstance(items, list) else []
        result[checklist_type] = items or list(defaults)
    return result


def generate_technical_document(project, briefing, scope=None, user_id=None):
    system = (
        "You are a technical writer. Produce a markdown technical document covering "
        "overview, architecture, stack, requirements, setup and security considerations."
    )
    return _strip_fences(_ask(system, _context(project, briefing, scope), "technical_document", user_id))


def generate_ai_command(project, briefing, scope=None, roadmap=None, user_id=None):
    """Prompt + structured command for a coding assistant (Cursor by default)."""
    system = (
        "You write build instructions for AI coding assistants. Reply ONLY with JSON: "
        '{"prompt_text": "<full natural-language prompt>", "json_command": {...}}'
    )
    content = _ask(system, _context(project, briefing, scope, roadmap), "ai_command", user_id)
    parsed = parse_json(content)
    if not isinstance(parsed, dict) or not parsed.get("prompt_text"):
        return {"prompt_text": _strip_fences(content), "json_command": {"project": project.name}}
    command = parsed.get("json_command")
    return {
        "prompt_text": parsed["prompt_text"],
        "json_command": command if isinstance(command, (dict, list)) else {"project": project.name},
    }


# ═════════════════════════════════════════════════════════════════════════════
# Documents & diagrams
# ═════════════════════════════════════════════════════════════════════════════

DOCUMENT_BRIEFS = {
    "scope": ("Scope Document", "a scope document: overview, objectives, in scope, out of scope, constraints, assumptions"),
    "technical": ("Technical Documentation", "technical documentation: architecture, stack, requirements, setup, security"),
    "architecture": ("Architecture Document", "an architecture document with Mermaid diagrams, components and decisions"),
    "api": ("API Documentation", "REST API documentation: endpoints, parameters, responses, examples, authentication"),
    "ai_command": ("AI Command", "a build prompt for an AI coding assistant"),
    "installation": ("Installation Guide", "an installation guide: prerequisites, install, configuration, testing, troubleshooting"),
    "styles": ("Style Guide", "a design-system style guide: colors, typography, spacing, components, accessibility"),
    "requirements": ("Requirements Specification", "a requirements specification: functional, non-functional, acceptance criteria"),
    "user-guide": ("User Guide", "a user guide: overview, getting started, features, troubleshooting, FAQ"),
    "testing": ("Testing Strategy", "a testing strategy: test types, main cases, criteria, tools, schedule"),
}


def generate_document(doc_type, project, briefing=None, scope=None, roadmap=None, user_id=None):
    """Returns (title, markdown content)."""
    label, brief = DOCUMENT_BRIEFS[doc_type]
    system = f"You are a senior technical writer. Write {brief}. Reply in markdown."
    content = _ask(system, _context(project, briefing, scope, roadmap), f"document_{doc_type}", user_id)
    return f"{label} - {project.name}", _strip_fences(content)


def generate_diagram(diagram_type, project, briefing=None, scope=None, user_id=None):
    system = (
        f"You design {diagram_type} diagrams for software projects. Reply ONLY with JSON: "
        '{"name": "...", "description": "...", "nodes": [{"id": "...", "label": "..."}], '
        '"edges": [{"from": "...", "to": "...", "label": "..."}]}'
    )
    parsed = parse_json(_ask(system, _context(project, briefing, scope), "diagram", user_id))
    if not isinstance(parsed, dict):
        parsed = {}
    return {
        "name": parsed.get("name") or f"{diagram_type.title()} Diagram",
        "description": parsed.get("description"),
        "data": {
            "nodes": _as_list(parsed.get("nodes")),
            "edges": _as_list(parsed.get("edges")),
        },
    }


# ═════════════════════════════════════════════════════════════════════════════
# WBS & stage tasks
# ═════════════════════════════════════════════════════════════════════════════

DEFAULT_WBS = {
    "phases": [{
        "id": "phase-1",
        "name": "Planning",
        "description": "Project planning",
        "estimated_hours": 40,
        "items": [{
            "id": "1.1",
            "title": "Requirements gathering",
            "description": "Analyse and document project requirements",
            "estimated_hours": 16,
            "priority": "high",
            "deliverables": ["Requirements document"],
            "dependencies": [],
        }],
    }],
    "total_estimated_hours": 40,
    "critical_path": ["1.1"],
}


def generate_wbs(project, scope, briefing=None, user_id=None):
    system = (
        "You build work breakdown structures. Reply ONLY with JSON: "
        '{"phases": [{"id": "...", "name": "...", "description": "...", "estimated_hours": 40, '
        '"items": [{"id": "1.1", "title": "...", "description": "...", "estimated_hours": 8, '
        '"priority": "high", "deliverables": [], "dependencies": []}]}], '
        '"total_estimated_hours": 0, "critical_path": ["1.1"]}. '
        "Use 4-6 phases with 4-8 items each."
    )
    parsed = parse_json(_ask(system, _context(project, briefing, scope), "wbs", user_id))
    if not isinstance(parsed, dict) or not isinstance(parsed.get("phases"), list):
        logger.warning("WBS reply for project %s did not parse; using default", project.id)
        return json.loads(json.dumps(DEFAULT_WBS))

    phases = [p for p in parsed["phases"] if isinstance(p, dict)]
    for p in phases:
        p["items"] = [item for item in _as_list(p.get("items")) if isinstance(item, dict)]
        for item in p["items"]:
            item["estimated_hours"] = max(0, as_int(item.get("estimated_hours")))
        p["estimated_hours"] = max(0, as_int(p.get("estimated_hours")))
    total = max(0, as_int(parsed.get("total_estimated_hours")))
    if total == 0:
        total = sum(p["estimated_hours"] for p in phases)
    return {
        "phases": phases,
        "total_estimated_hours": total,
        "critical_path": _as_list(parsed.get("critical_path")),
    }


def generate_stage_tasks(stage, project, briefing=None, user_id=None):
    system = (
        "You break project stages into tasks. Reply ONLY with JSON: "
        '{"tasks": [{"title": "...", "description": "...", "weight": 1}]}'
    )
    prompt = f"Stage: {stage.name} ({stage.type})\n\n{_context(project, briefing)}"
    parsed = parse_json(_ask(system, prompt, "stage_tasks", user_id))
    tasks = parsed.get("tasks") if isinstance(parsed, dict) else parsed
    if not isinstance(tasks, list):
        tasks = []
    cleaned = []
    for t in tasks:
        if not isinstance(t, dict) or not t.get("title"):
            continue
        weight = max(1, as_int(t.get("weight"), 1))
        cleaned.append({"title": str(t["title"])[:255], "description": t.get("description"), "weight": weight})
    return cleaned or [{"title": f"{stage.name} work", "description": "Default task", "weight": 1}]


# ═════════════════════════════════════════════════════════════════════════════
# Agents
# ═════════════════════════════════════════════════════════════════════════════

AGENT_FOCUS = {
    "scope": "scope completeness, ambiguity and missing deliverables",
    "technical": "technical feasibility, architecture and stack fit",
    "timeline": "schedule realism, dependencies and critical path",
    "risks": "delivery, security and business risks with mitigations",
    "financial": "budget fit, cost drivers and pricing",
    "documentation": "documentation gaps and handover readiness",
}


def run_agent_analysis(agent_type, project, briefing=None, scope=None, user_id=None):
    system = (
        f"You are a specialist reviewer focused on {AGENT_FOCUS[agent_type]}. Reply ONLY with JSON: "
        '{"result": {"summary": "..."}, "confidence": 0-100, '
        '"recommendations": ["..."], "warnings": ["..."]}'
    )
    content = _ask(system, _context(project, briefing, scope), f"agent_{agent_type}", user_id)
    parsed = parse_json(content)
    if not isinstance(parsed, dict):
        return {"result": {"summary": _strip_fences(content)}, "confidence": 50,
                "recommendations": [], "warnings": []}
    confidence = min(100, max(0, as_int(parsed.get("confidence"))))
    result = parsed.get("result")
    return {
        "result": result if isinstance(result, dict) else {"summary": str(result or "")},
        "confidence": confidence,
        "recommendations": [str(r) for r in _as_list(parsed.get("recommendations"))],
        "warnings": [str(w) for w in _as_list(parsed.get("warnings"))],
    }


# ═════════════════════════════════════════════════════════════════════════════
# Proposals
# ═════════════════════════════════════════════════════════════════════════════

def generate_proposal_phases(project, briefing=None, scope=None, user_id=None):
    """LLM-suggested phases as calculator input, or None when the reply is unusable."""
    system = (
        "You prepare commercial proposals for software projects. Reply ONLY with JSON: "
        '{"executive_summary": "...", "methodology": "...", '
        '"phases": [{"name": "...", "estimated_hours": 40, "deliverables": ["..."]}]}'
    )
    parsed = parse_json(_ask(system, _context(project, briefing, scope), "proposal", user_id))
    if not isinstance(parsed, dict) or not isinstance(parsed.get("phases"), list):
        return None
    phases = []
    for index, p in enumerate(parsed["phases"], start=1):
        if not isinstance(p, dict) or not p.get("name"):
            continue
        phases.append({
            "id": f"phase-{index}",
            "name": p["name"],
            "estimated_hours": max(0, as_int(p.get("estimated_hours"))),
            "tasks": [{"name": str(d), "estimated_hours": 0} for d in _as_list(p.get("deliverables"))],
        })
    if not phases:
        return None
    return {
        "executive_summary": parsed.get("executive_summary"),
        "methodology": parsed.get("methodology"),
        "phases": phases,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Code export
# ═════════════════════════════════════════════════════════════════════════════

def slugify(name):
    return re.sub(r"[^a-z0-9]+", "-", (name or "project").lower()).strip("-") or "project"


def generate_project_structure(project, briefing=None, scope=None, roadmap=None, stack="react-vite", user_id=None):
    framework = EXPORT_STACKS.get(stack, EXPORT_STACKS["react-vite"])
    system = (
        f"You generate complete, runnable {framework} projects. Reply ONLY with JSON: "
        '{"file_tree": ["path"], "files": {"path": "content"}, "package_json": {...}, '
        '"config_files": {"path": "content"}, "readme": "markdown"}'
    )
    content = _ask(system, _context(project, briefing, scope, roadmap), "project_structure", user_id)
    parsed = parse_json(content)
    if (
        not isinstance(parsed, dict)
        or not isinstance(parsed.get("files"), dict)
        or not isinstance(parsed.get("config_files") or {}, dict)
        or not isinstance(parsed.get("readme") or "", str)
    ):
        logger.warning("Project structure reply did not parse; using %s scaffold", stack)
        return default_project_structure(project.name, stack, briefing)
    return {
        "name": slugify(project.name),
        "stack": stack,
        "framework": framework,
        "file_tree": [str(path) for path in _as_list(parsed.get("file_tree"))],
        "files": {str(k): str(v) for k, v in parsed["files"].items()},
        "package_json": parsed.get("package_json") if isinstance(parsed.get("package_json"), dict) else {},
        "config_files": {str(k): str(v) for k, v in (parsed.get("config_files") or {}).items()},
        "readme": parsed.get("readme") or f"# {project.name}\n",
    }


def default_project_structure(project_name, stack, briefing=None):
    """Minimal runnable scaffold per stack family."""
    slug = slugify(project_name)
    description = (briefing.business_objective if briefing else None) or f"{project_name} project"
    readme_run = "npm install\nnpm run dev"

    if stack in ("python-flask", "python-fastapi"):
        if stack == "python-flask":
            app_py = (
                "from flask import Flask, jsonify\n\napp = Flask(__name__)\n\n\n"
                "@app.get(\"/api/status\")\ndef status():\n"
                f"    return jsonify(status=\"ok\", project=\"{project_name}\")\n"
            )
            requirements = "flask>=3.0\n"
            readme_run = "pip install -r requirements.txt\nflask --app app run"
        else:
            app_py = (
                "from fastapi import FastAPI\n\napp = FastAPI()\n\n\n"
                "@app.get(\"/api/status\")\ndef status():\n"
                f"    return {{\"status\": \"ok\", \"project\": \"{project_name}\"}}\n"
            )
            requirements = "fastapi>=0.110\nuvicorn>=0.29\n"
            readme_run = "pip install -r requirements.txt\nuvicorn app:app --reload"
        files = {"app.py": app_py, "requirements.txt": requirements}
        config_files = {".gitignore": "__pycache__/\n.venv/\n"}
        package_json = {"name": slug, "version": "1.0.0", "description": description}
    elif stack in ("express", "node"):
        files = {
            "src/index.ts": (
                "import express from \"express\";\n\nconst app = express();\n"
                "const PORT = process.env.PORT || 3000;\n\napp.use(express.json());\n\n"
                f"app.get(\"/api/status\", (_req, res) => res.json({{ status: \"ok\", project: \"{project_name}\" }}));\n\n"
                "app.listen(PORT, () => console.log(`Listening on ${PORT}`));\n"
            ),
        }
        config_files = {"tsconfig.json": json.dumps({
            "compilerOptions": {"target": "ES2020", "module": "commonjs", "outDir": "./dist",
                                "rootDir": "./src", "strict": True, "esModuleInterop": True},
            "include": ["src/**/*"],
        }, indent=2)}
        package_json = {
            "name": slug, "version": "1.0.0", "description": description, "main": "dist/index.js",
            "scripts": {"dev": "tsx watch src/index.ts", "build": "tsc", "start": "node dist/index.js"},
            "dependencies": {"express": "^4.18.2"},
            "devDependencies": {"@types/express": "^4.17.21", "tsx": "^4.6.0", "typescript": "^5.3.0"},
        }
    else:
        files = {
            "index.html": (
                "<!DOCTYPE html>\n<html lang=\"en\">\n  <head>\n    <meta charset=\"UTF-8\" />\n"
                f"    <title>{project_name}</title>\n  </head>\n  <body>\n    <div id=\"root\"></div>\n"
                "    <script type=\"module\" src=\"/src/main.tsx\"></script>\n  </body>\n</html>\n"
            ),
            "src/main.tsx": (
                "import { StrictMode } from 'react'\nimport { createRoot } from 'react-dom/client'\n"
                "import App from './App.tsx'\n\ncreateRoot(document.getElementById('root')!).render(\n"
                "  <StrictMode>\n    <App />\n  </StrictMode>,\n)\n"
            ),
            "src/App.tsx": (
                f"function App() {{\n  return (\n    <main>\n      <h1>{project_name}</h1>\n"
                f"      <p>{description}</p>\n    </main>\n  )\n}}\n\nexport default App\n"
            ),
        }
        config_files = {"vite.config.ts": (
            "import { defineConfig } from 'vite'\nimport react from '@vitejs/plugin-react'\n\n"
            "export default defineConfig({ plugins: [react()] })\n"
        )}
        package_json = {
            "name": slug, "version": "1.0.0", "private": True, "type": "module",
            "scripts": {"dev": "vite", "build": "tsc && vite build", "preview": "vite preview"},
            "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0"},
            "devDependencies": {"@vitejs/plugin-react": "^4.2.0", "typescript": "^5.3.0", "vite": "^5.0.0"},
        }
        stack = "react-vite"

    readme = f"# {project_name}\n\n{description}\n\n## Run\n\n```bash\n{readme_run}\n```\n"
    return {
        "name": slug,
        "stack": stack,
        "framework": EXPORT_STACKS[stack],
        "file_tree": sorted([*files, *config_files, "README.md", "package.json"]),
        "files": files,
        "package_json": package_json,
        "config_files": config_files,
        "readme": readme,
    }

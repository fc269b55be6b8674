"""Tests for monorepo discovery and the overview section."""

import json
from pathlib import Path

import pytest

from reposcribe.pipeline.subprojects import (
    MONOREPO_SECTION_ID,
    discover_subprojects,
    render_monorepo_overview,
)
from reposcribe.services.run_orchestrator import create_orchestrator


def _write(root: Path, rel: str, content: str) -> None:
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    root = tmp_path / "mono"
    _write(root, "package.json", json.dumps({"name": "mono", "private": True}))
    _write(
        root,
        "apps/web/package.json",
        json.dumps({"name": "web", "dependencies": {"express": "^4.0.0"}}),
    )
    _write(root, "apps/web/server.js", "app.get('/health', (req, res) => res.send('ok'));\n")
    _write(root, "services/api/pyproject.toml", '[project]\nname = "api"\ndependencies = ["fastapi"]\n')
    _write(root, "services/api/main.py", "@app.get('/items')\ndef items(): ...\n")
    _write(root, "worker/Cargo.toml", '[package]\nname = "worker"\n')
    _write(root, "node_modules/dep/package.json", json.dumps({"name": "dep"}))
    _write(root, "docs/guide.md", "# Guide\n")
    return root


def test_discovery_order_and_names(monorepo: Path):
    subs = discover_subprojects(monorepo)
    assert [s.name for s in subs] == ["mono", "web", "api", "worker"]
    assert subs[0].root == monorepo
    assert subs[1].root == monorepo / "apps" / "web"


def test_single_project_is_not_a_monorepo(tmp_path: Path):
    _write(tmp_path, "pyproject.toml", '[project]\nname = "solo"\n')
    assert [s.name for s in discover_subprojects(tmp_path)] == ["solo"]


def test_overview_table():
    body = render_monorepo_overview(
        [
            {"name": "web", "stack": ["Express"], "languages": {"JavaScript": 2, "JSON": 1}, "routes_count": 1},
            {"name": "api", "stack": [], "languages": {}, "routes_count": 0},
        ]
    )
    lines = body.splitlines()
    assert lines[0] == "| App | Stack | Languages | Routes |"
    assert lines[2] == "| web | Express | JavaScript:2, JSON:1 | 1 |"
    assert lines[3] == "| api |  |  | 0 |"


@pytest.mark.asyncio
async def test_monorepo_overview_leads_the_draft(config, monorepo, fake_embeddings, fake_llm):
    orchestrator = create_orchestrator(config, embedding_provider=fake_embeddings, llm_provider=fake_llm)
    result = await orchestrator.start_draft(monorepo)

    first = result["sections"][0]
    assert first["id"] == MONOREPO_SECTION_ID
    rows = [line for line in first["body"].splitlines() if line.startswith("| ")][2:]
    assert [row.split("|")[1].strip() for row in rows] == ["mono", "web", "api", "worker"]
    web_row = rows[1]
    assert "Express" in web_row
    assert web_row.rstrip(" |").endswith("1")
    assert result["markdown_preview"].startswith("## Monorepo Overview")

"""Tests for deterministic sections and final README composition."""

import json
from pathlib import Path

from reposcribe.pipeline.sections import (
    build_decisions,
    build_sections,
    compose_final,
    dedupe_lines,
    github_anchor,
    render_draft,
)


def _section(title: str, body: str) -> dict:
    return {"id": title.lower().replace(" ", "_"), "title": title, "body": body}


class TestBuildSections:
    def test_getting_started_is_always_present(self):
        sections = build_sections({}, 1200)
        assert [s["id"] for s in sections] == ["getting_started"]
        assert sections[0]["body"].startswith("```bash\n")
        assert sections[0]["body"].endswith("\n```")

    def test_getting_started_follows_package_manager(self):
        state = {"deps": {"pkg_managers": ["pnpm"], "scripts": {"dev": "vite"}}}
        sections = {s["id"]: s for s in build_sections(state, 1200)}
        assert sections["getting_started"]["body"] == "```bash\npnpm i\npnpm dev\n```"
        assert "pnpm" in sections["tech_stack"]["body"]

    def test_sections_follow_canonical_order(self):
        state = {
            "lang_profile": {"languages": {"Python": 3}},
            "stack": {"frameworks": ["FastAPI"]},
            "routes": {"items": [{"method": "GET", "path": "/items"}], "count": 1},
            "docs": {"topics": {"license": {"present": True}}},
            "security": {"status": {"risk_score": 0}},
        }
        titles = [s["title"] for s in build_sections(state, 1200)]
        assert titles == [
            "Overview",
            "Tech Stack",
            "Getting Started",
            "Routes",
            "Documentation",
            "Security",
            "License",
        ]

    def test_bodies_are_capped(self):
        routes = {"items": [{"method": "GET", "path": f"/r{i}"} for i in range(50)], "count": 50}
        sections = build_sections({"routes": routes}, 40)
        assert all(len(s["body"]) <= 40 for s in sections)

    def test_speculative_words_are_removed(self):
        state = {"architecture": {"summary": "This is probably a web service."}}
        body = next(s["body"] for s in build_sections(state, 1200) if s["id"] == "architecture")
        assert "probably" not in body


def test_decisions_enable_toc_from_three_sections():
    assert build_decisions([_section("A", "x")] * 2)["add_toc"] is False
    assert build_decisions([_section("A", "x")] * 3)["add_toc"] is True


def test_render_draft():
    draft = render_draft([_section("Overview", "Hello."), _section("License", "MIT")])
    assert draft == "## Overview\n\nHello.\n\n## License\n\nMIT\n"


def test_github_anchor():
    assert github_anchor("Tech Stack") == "tech-stack"
    assert github_anchor("CI") == "ci"
    assert github_anchor("Getting Started!") == "getting-started"


def test_dedupe_keeps_code_and_tables():
    text = "same line\nsame line\n```\nx\nx\n```\n| a |\n| a |"
    assert dedupe_lines(text) == "same line\n```\nx\nx\n```\n| a |\n| a |"


class TestComposeFinal:
    def test_title_badges_and_toc(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(
            json.dumps(
                {"name": "widget", "version": "2.0.0", "license": "MIT", "description": "Widgets."}
            )
        )
        sections = [
            _section("License", "See `LICENSE`."),
            _section("Overview", "Builds widgets."),
            _section("Getting Started", "```bash\nnpm ci\n```"),
        ]
        final = compose_final(tmp_path, sections, build_decisions(sections))
        md = final["markdown"]

        assert final["title"] == "widget"
        assert final["outline"] == ["Overview", "Getting Started", "License"]
        assert md.startswith("# widget\n\nWidgets.\n\n![license]")
        assert "badge/version-2.0.0-blue" in md
        assert "- [Getting Started](#getting-started)" in md
        assert md.index("## Overview") < md.index("## Getting Started") < md.index("## License")
        assert md.endswith("\n") and not md.endswith("\n\n")
        assert "\n\n\n" not in md

    def test_no_toc_for_short_readme(self, tmp_path: Path):
        sections = [_section("Overview", "Small.")]
        md = compose_final(tmp_path, sections, {"add_toc": True, "prefer_badges": True})["markdown"]
        assert md == f"# {tmp_path.name}\n\n## Overview\n\nSmall.\n"

    def test_pyproject_title_and_redaction(self, tmp_path: Path):
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "toolkit"\n')
        sections = [_section("Overview", "Token sk-abcdefghijklmnop12345 lives in /etc/toolkit/conf.ini")]
        md = compose_final(tmp_path, sections, {})["markdown"]
        assert md.startswith("# toolkit\n")
        assert "sk-abcdefghijklmnop12345" not in md
        assert "…/conf.ini" in md

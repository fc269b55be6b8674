"""Retrieval-grounded LLM rewrite of deterministic README sections."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loguru import logger

from reposcribe.core.config.llm_config import LLMConfig
from reposcribe.core.exceptions import ProviderError
from reposcribe.interfaces.llm_provider import LLMProvider
from reposcribe.services.redactor import redact
from reposcribe.services.retrieval_service import RetrievalEngine

QUERY_DRAFT_CHARS = 240


def build_system_prompt(char_cap: int) -> str:
    return " ".join(
        [
            "You are a precise technical writer.",
            f"Hard cap {char_cap} characters.",
            "Only state facts supported by the draft or the snippets.",
            "No secrets, keys, endpoints, or absolute paths.",
            'Return JSON: {"id":"<section id>","body":"<markdown>"}',
        ]
    )


def parse_section_body(section_id: str, content: str) -> str:
    """Extract ``body`` from the model's JSON reply.

    Raises:
        ProviderError: If the reply is not a JSON object with a string body
            or names a different section.
    """
    try:
        data = json.loads(content)
    except ValueError as e:
        raise ProviderError(f"LLM reply is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProviderError("LLM reply is not a JSON object")
    reply_id = data.get("id", section_id)
    if reply_id != section_id:
        raise ProviderError(f"LLM replied for section {reply_id!r}, expected {section_id!r}")
    body = data.get("body")
    if not isinstance(body, str) or not body.strip():
        raise ProviderError("LLM reply has no body")
    return body


class SectionRewriter:
    """Rewrites sections one by one; failures fall back to the draft body."""

    def __init__(self, llm_provider: LLMProvider, config: LLMConfig):
        self._llm = llm_provider
        self._config = config

    @property
    def llm_provider(self) -> LLMProvider:
        return self._llm

    async def rewrite_section(
        self,
        section: dict[str, str],
        repo_hash: str,
        repo_root: Path,
        retrieval: RetrievalEngine | None,
    ) -> str:
        cfg = self._config
        snippets: list[str] = []
        if retrieval is not None:
            query = f'Evidence for README "{section["title"]}": {section["body"][:QUERY_DRAFT_CHARS]}'
            passages = await retrieval.retrieve(
                repo_hash,
                query,
                k=cfg.retrieval_k,
                max_chars=cfg.retrieval_max_chars,
                repo_root=repo_root,
            )
            snippets = [redact(p.body) for p in passages]

        prompt = json.dumps(
            {"id": section["id"], "draft": section["body"], "snippets": snippets},
            ensure_ascii=False,
        )
        response = await self._llm.complete(
            prompt,
            system=build_system_prompt(cfg.section_char_cap),
            timeout=cfg.timeout_seconds,
        )
        body = parse_section_body(section["id"], response.content)
        return redact(body).strip()[: cfg.section_char_cap].strip()

    async def rewrite_sections(
        self,
        sections: list[dict[str, str]],
        repo_hash: str,
        repo_root: Path,
        retrieval: RetrievalEngine | None,
    ) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for section in sections:
            try:
                body = await self.rewrite_section(section, repo_hash, repo_root, retrieval)
            except (ProviderError, OSError, ValueError) as e:
                logger.warning(
                    f"LLM rewrite failed for section {section['id']}, keeping draft: {e}"
                )
                body = section["body"]
            out.append({**section, "body": body or section["body"]})
        return out

"""LLM prompt building for reviews and PR chat."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import tiktoken

from ..config.project import ProjectConfig
from .base import PromptBuilder


# ----------------------------
# Token budgeting
# ----------------------------

def _get_encoding(model: str | None = None) -> "tiktoken.Encoding":
    """Encoding for the model, cl100k_base when tiktoken does not know it."""
    if model:
        try:
            return tiktoken.encoding_for_model(model)
        except KeyError:
            pass
    return tiktoken.get_encoding("cl100k_base")


def _get_token_counter(model: str | None = None) -> Callable[[str], int]:
    encoding = _get_encoding(model)

    def count_tokens(text: str) -> int:
        return len(encoding.encode(text, disallowed_special=()))

    return count_tokens


def estimate_tokens(text: str) -> int:
    """Token count of text with the default encoding."""
    return _get_token_counter()(text)


def truncate_to_tokens(text: str, max_tokens: int, model: str | None = None, keep: str = "head") -> str:
    """Cut text to at most max_tokens, keeping its head (or its tail)."""
    if max_tokens <= 0:
        return ""
    encoding = _get_encoding(model)
    tokens = encoding.encode(text, disallowed_special=())
    if len(tokens) <= max_tokens:
        return text
    if keep == "tail":
        return "…(earlier content truncated)…\n" + encoding.decode(tokens[-max_tokens:])
    return encoding.decode(tokens[:max_tokens]) + "\n…(truncated)…"


@dataclass(frozen=True)
class PromptConfig:
    max_tokens: int = 60000
    reserve_reply_tokens: int = 1200  # instructions and formatting around the sections
    model: str | None = None


def _allocate(sections: List[Tuple[str, str]], budget: int, count_tokens: Callable[[str], int]) -> Dict[str, int]:
    """Greedy budget split: earlier sections are served first."""
    remaining = budget
    allocation: Dict[str, int] = {}
    for name, text in sections:
        size = count_tokens(text)
        allocation[name] = min(size, max(remaining, 0))
        remaining -= allocation[name]
    return allocation


# ----------------------------
# Prompt sections
# ----------------------------

TONES = {
    "professional": "Professional, objective and constructive",
    "friendly": "Friendly and encouraging, while still precise",
    "critical": "Direct and rigorous; call out every weakness",
    "instructional": "Patient and explanatory, teaching the reasoning behind each point",
}

DEFAULT_PERSONA = "Principal Software Engineer"


def _persona(config: Optional[ProjectConfig]) -> str:
    if config and config.chat.persona:
        return config.chat.persona
    return DEFAULT_PERSONA


def _format_rules(rules: List[str]) -> str:
    return "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, 1))


def _format_history(history: List[Dict[str, str]]) -> str:
    lines: List[str] = []
    for comment in history:
        user = comment.get("user") or "unknown"
        body = (comment.get("body") or "").strip()
        if body:
            lines.append(f"**{user}**: {body}")
    return "\n\n".join(lines)


class DefaultPromptBuilder(PromptBuilder):
    """Default implementation of PromptBuilder."""

    def __init__(self, config: PromptConfig | None = None):
        self.config = config or PromptConfig()
        self.count_tokens = _get_token_counter(self.config.model)

    @property
    def budget(self) -> int:
        return max(1000, self.config.max_tokens - self.config.reserve_reply_tokens)

    def _fit(self, text: str, max_tokens: int, keep: str = "head") -> str:
        return truncate_to_tokens(text, max_tokens, self.config.model, keep=keep)

    def build_review_prompt(
        self,
        title: str,
        description: str,
        files: List[Dict[str, str]],
        guidelines: str,
        rag_context: str,
        config: Optional[ProjectConfig] = None,
    ) -> str:
        review = config.review if config else None
        tone = TONES.get(review.tone if review else "professional", TONES["professional"])
        rules = review.rules if review else []

        diff_json = json.dumps(
            [{"name": f["filename"], "diff": f.get("patch") or ""} for f in files],
            indent=1,
        )

        header: List[str] = []
        header.append(f"You are **CodeSpecter**, a {_persona(config)} reviewing a pull request as the repository's gatekeeper.")
        header.append("")
        header.append("If you find a security vulnerability (injection, IDOR, exposed secrets, XSS), flag it as a **BLOCKER** at the top of the summary.")
        header.append("")
        header.append("## Tone")
        header.append(f"Adopt this tone: {tone}.")
        header.append("")
        header.append("## Repository rules (highest priority)")
        if rules:
            header.append("The repository owner defined these mandatory rules. A violation is an automatic change request.")
            header.append("<STRICT_CONFIG_RULES>")
            header.append(_format_rules(rules))
            header.append("</STRICT_CONFIG_RULES>")
        else:
            header.append("No configured rules. Apply standard guidelines.")
        header.append("")
        header.append("## Pull request")
        header.append(f"**Title:** {title}")
        header.append(f"**Description:** {description or '(none)'}")
        fixed = "\n".join(header) + "\n" + self._review_footer()

        # Diff first, then guidelines, then retrieved context
        allocation = _allocate(
            [("diff", diff_json), ("guidelines", guidelines), ("context", rag_context)],
            self.budget - self.count_tokens(fixed),
            self.count_tokens,
        )

        lines: List[str] = ["\n".join(header), ""]
        lines.append("## Code diff")
        lines.append("<USER_CODE_CHANGES>")
        lines.append(self._fit(diff_json, allocation["diff"]))
        lines.append("</USER_CODE_CHANGES>")
        lines.append("")
        lines.append("## Repository guidelines")
        if guidelines.strip():
            lines.append("Project documents describing architectural standards. Conflicts resolve as rules > guidelines > codebase context.")
            lines.append("<REPOSITORY_GUIDELINES>")
            lines.append(self._fit(guidelines, allocation["guidelines"]))
            lines.append("</REPOSITORY_GUIDELINES>")
        else:
            lines.append("No repository guidelines found. Evaluate against senior engineering practice (SOLID, OWASP, DRY).")
        lines.append("")
        lines.append("## Codebase context")
        lines.append("Snippets retrieved from the existing codebase, showing established patterns.")
        lines.append("<CODEBASE_CONTEXT>")
        lines.append(self._fit(rag_context, allocation["context"]) if rag_context.strip() else "(no related code found)")
        lines.append("</CODEBASE_CONTEXT>")
        lines.append("")
        lines.append(self._review_footer())
        return "\n".join(lines)

    def _review_footer(self) -> str:
        lines: List[str] = []
        lines.append("## Output format (Markdown)")
        lines.append("")
        lines.append("### Executive Summary")
        lines.append("> **Verdict:** APPROVE / REQUEST CHANGES / BLOCKER")
        lines.append("> **Readiness Score:** 0-100%")
        lines.append("")
        lines.append("### Strengths")
        lines.append("")
        lines.append("### Detailed Analysis")
        lines.append("Use collapsible `<details>` sections for: security, architecture and design, performance, tests.")
        lines.append("")
        lines.append("### Critical Issues & Required Changes")
        lines.append("For each issue give the location (`file:line`), the violated rule or guideline, the current code and the recommended fix.")
        lines.append("If there are none, say so.")
        lines.append("")
        lines.append("### Pre-Merge Checklist")
        lines.append("")
        lines.append("Only include a Mermaid `sequenceDiagram` when the change involves a non-trivial flow; quote every label.")
        lines.append("")
        lines.append("*Generated by CodeSpecter*")
        return "\n".join(lines)

    def build_chat_prompt(
        self,
        pr_title: str,
        path: str,
        diff_snippet: str,
        history: List[Dict[str, str]],
        rag_context: str,
        question: str,
        config: Optional[ProjectConfig] = None,
    ) -> str:
        instructions = config.chat.instructions if config else []

        header: List[str] = []
        header.append(f"You are **CodeSpecter**, a {_persona(config)} and mentor taking part in a pull request discussion.")
        header.append("Answer the question, point out risks it implies, and show the better pattern when there is one.")
        header.append("")
        header.append("## Context")
        header.append(f"- **PR title:** {pr_title}")
        header.append(f"- **File being discussed:** {path}")
        if instructions:
            header.append("")
            header.append("## Repository instructions")
            header.append(_format_rules(instructions))
        header.append("")
        header.append("## Question")
        header.append(f'"{question}"')
        fixed = "\n".join(header) + "\n" + self._chat_footer()

        history_text = _format_history(history)
        allocation = _allocate(
            [("diff", diff_snippet), ("history", history_text), ("context", rag_context)],
            self.budget - self.count_tokens(fixed),
            self.count_tokens,
        )

        lines: List[str] = ["\n".join(header[:-3]), ""]
        lines.append("## Code under discussion")
        lines.append("```")
        lines.append(self._fit(diff_snippet, allocation["diff"]))
        lines.append("```")
        lines.append("")
        lines.append("## Conversation so far (oldest first)")
        # Keep the most recent messages when the thread is long
        lines.append(self._fit(history_text, allocation["history"], keep="tail") if history_text else "(no earlier comments)")
        lines.append("")
        lines.append("## Project knowledge")
        lines.append(self._fit(rag_context, allocation["context"]) if rag_context.strip() else "(no related code found)")
        lines.append("")
        lines.extend(header[-2:])
        lines.append("")
        lines.append(self._chat_footer())
        return "\n".join(lines)

    def _chat_footer(self) -> str:
        lines: List[str] = []
        lines.append("## Answer format (Markdown)")
        lines.append("1. Direct answer.")
        lines.append("2. The reasoning behind it.")
        lines.append("3. Code examples when useful.")
        lines.append("4. A Mermaid `sequenceDiagram` or `flowchart TD` only for flows that need it; quote every label.")
        return "\n".join(lines)


def build_review_prompt(
    title: str,
    description: str,
    files: List[Dict[str, str]],
    guidelines: str,
    rag_context: str,
    config: Optional[ProjectConfig] = None,
    max_tokens: int = 60_000,
) -> str:
    """Wrapper for DefaultPromptBuilder."""
    builder = DefaultPromptBuilder(PromptConfig(max_tokens=max_tokens))
    return builder.build_review_prompt(title, description, files, guidelines, rag_context, config)


def build_chat_prompt(
    pr_title: str,
    path: str,
    diff_snippet: str,
    history: List[Dict[str, str]],
    rag_context: str,
    question: str,
    config: Optional[ProjectConfig] = None,
    max_tokens: int = 60_000,
) -> str:
    """Wrapper for DefaultPromptBuilder."""
    builder = DefaultPromptBuilder(PromptConfig(max_tokens=max_tokens))
    return builder.build_chat_prompt(pr_title, path, diff_snippet, history, rag_context, question, config)

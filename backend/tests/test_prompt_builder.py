"""Tests for review and chat prompt assembly."""

from codespecter.config import parse_project_config
from codespecter.prompt import DefaultPromptBuilder, PromptConfig, build_chat_prompt, build_review_prompt, estimate_tokens
from codespecter.prompt.builder import truncate_to_tokens

FILES = [{"filename": "api/users.py", "patch": "+def list_users():\n+    return db.all()"}]


def test_review_prompt_without_config():
    prompt = build_review_prompt("Add users", "", FILES, "", "")
    assert "api/users.py" in prompt
    assert "**Description:** (none)" in prompt
    assert "No configured rules. Apply standard guidelines." in prompt
    assert "No repository guidelines found." in prompt
    assert "(no related code found)" in prompt
    assert "Professional, objective and constructive" in prompt


def test_review_prompt_with_rules_and_tone():
    config = parse_project_config(
        "review:\n  tone: instructional\n  rules:\n    - Paginate list endpoints\n    - No raw SQL\n"
    )
    prompt = build_review_prompt("Add users", "desc", FILES, "--- FILE: g.md ---\nGuide", "def helper(): ...", config)
    assert "<STRICT_CONFIG_RULES>\n1. Paginate list endpoints\n2. No raw SQL\n</STRICT_CONFIG_RULES>" in prompt
    assert "Patient and explanatory" in prompt
    assert "<REPOSITORY_GUIDELINES>\n--- FILE: g.md ---\nGuide\n</REPOSITORY_GUIDELINES>" in prompt
    assert "def helper(): ..." in prompt


def test_sections_keep_their_order():
    prompt = build_review_prompt("t", "d", FILES, "GUIDE", "CONTEXT")
    assert prompt.index("## Code diff") < prompt.index("## Repository guidelines") < prompt.index("## Codebase context")


def test_oversized_review_stays_within_budget():
    builder = DefaultPromptBuilder(PromptConfig(max_tokens=4000))
    files = [{"filename": f"src/f{i}.py", "patch": "+x = compute(x)\n" * 400} for i in range(10)]
    prompt = builder.build_review_prompt("Big", "", files, "GUIDE-MARKER " * 2000, "CONTEXT-MARKER " * 2000)
    assert estimate_tokens(prompt) <= 4000
    # The diff is served first and exhausts the budget
    assert "src/f0.py" in prompt
    assert "…(truncated)…" in prompt
    assert "GUIDE-MARKER" not in prompt
    assert "CONTEXT-MARKER" not in prompt


def test_chat_prompt_contents():
    config = parse_project_config("chat:\n  persona: Database Expert\n  instructions: [Prefer indexes]\n")
    history = [{"user": "alice", "body": "Is this N+1?"}, {"user": "bob", "body": "   "}]
    prompt = build_chat_prompt("Add users", "api/users.py", "@@ hunk @@", history, "", "Should I cache?", config)
    assert "Database Expert" in prompt
    assert "1. Prefer indexes" in prompt
    assert "**alice**: Is this N+1?" in prompt
    assert "**bob**" not in prompt
    assert "- **File being discussed:** api/users.py" in prompt
    assert '"Should I cache?"' in prompt
    assert prompt.index("## Conversation so far") < prompt.index("## Question")


def test_chat_without_history():
    prompt = build_chat_prompt("t", "General context", "snippet", [], "", "why?")
    assert "(no earlier comments)" in prompt
    assert "Principal Software Engineer" in prompt


def test_long_history_keeps_recent_messages():
    history = [{"user": f"user{i}", "body": f"message number {i} " * 30} for i in range(200)]
    prompt = build_chat_prompt("t", "p", "snippet", history, "", "q", max_tokens=3000)
    assert "**user199**" in prompt
    assert "**user0**:" not in prompt
    assert "…(earlier content truncated)…" in prompt


def test_truncate_to_tokens():
    text = "alpha beta gamma delta " * 50
    assert truncate_to_tokens(text, 10_000) == text
    assert truncate_to_tokens(text, 0) == ""
    head = truncate_to_tokens(text, 5)
    assert head.startswith("alpha") and head.endswith("…(truncated)…")
    tail = truncate_to_tokens(text, 5, keep="tail")
    assert tail.endswith("delta ")

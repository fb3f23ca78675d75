"""Summary reasoning for tool loops that ran out of turns.

When a PromptWithTools call hits its iteration limit, one extra tool-free
call receives the original task, every tool call made and the partial
conversation, and is asked to answer as well as it can from that.
"""

from __future__ import annotations

from typing import Any


def build_summary_prompt(
    system_prompt: str,
    user_prompt: str,
    conversation: list[dict[str, Any]],
    tool_calls: list[str],
) -> str:
    """Render the synthesis prompt for a truncated tool loop."""
    parts = [
        "# Original task background",
        system_prompt,
        "",
        "# Original user question",
        user_prompt,
        "",
    ]

    if tool_calls:
        parts.append("# Tool calls already executed")
        parts.extend(f"{i}. {call}" for i, call in enumerate(tool_calls, 1))
        parts.append("")

    details = _conversation_details(conversation)
    if details:
        parts.append("# Conversation history and tool results")
        parts.append(details)
        parts.append("")

    parts.extend([
        "# Synthesis task",
        "The multi-turn reasoning above was interrupted after reaching the "
        "maximum number of iterations. Using the context, tool call records and "
        "conversation history you have, give a complete and useful answer to the "
        "original user question.",
        "",
        "Notes:",
        "1. Reason only from the information available; do not invent content.",
        "2. If the information is insufficient, state what is known and what still needs investigating.",
        "3. Give concrete, actionable conclusions.",
        "4. Make full use of the tool calls already executed and their results.",
    ])
    return "\n".join(parts)


def _conversation_details(conversation: list[dict[str, Any]]) -> str:
    lines: list[str] = []
    # The system prompt and the first user message are rendered above.
    skipped_user = False
    for turn, message in enumerate(conversation, 1):
        role = message.get("role", "")
        if role == "system":
            continue
        if role == "user" and not skipped_user:
            skipped_user = True
            continue
        content = message.get("content") or ""
        if role == "assistant":
            lines.append(f"## Assistant response [turn {turn}]")
            lines.append(f"**Text reply:** {content}" if content else "(no content)")
        elif role == "tool":
            lines.append(f"## Tool result `{message.get('name', '')}` [turn {turn}]")
            lines.append(str(content))
        else:
            lines.append(f"## User input [turn {turn}]")
            lines.append(str(content))
        lines.append("")
    return "\n".join(lines).strip()

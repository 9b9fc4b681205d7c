from __future__ import annotations

import dataclasses

from ..handoffs import HandoffInputData
from ..items import ModelResponse, RunItem, TextMessage, ToolCall, ToolResponse, TResponseInputItem

"""Contains common handoff input filters, for convenience. """


def remove_all_tools(handoff_input_data: HandoffInputData) -> HandoffInputData:
    """Filters out all tool items: tool calls, tool responses (including handoff transfer
    messages), and the tool calls attached to model responses. A model response left with no
    text is dropped."""

    return handoff_input_data.clone(
        input_history=_remove_tools_from_items(handoff_input_data.input_history),
        pre_handoff_items=_remove_tools_from_items(handoff_input_data.pre_handoff_items),
        new_items=_remove_tools_from_items(handoff_input_data.new_items),
    )


def _remove_tools_from_items(items: tuple[RunItem, ...]) -> tuple[RunItem, ...]:
    filtered_items: list[RunItem] = []
    for item in items:
        if isinstance(item, (ToolCall, ToolResponse)):
            continue
        if isinstance(item, ModelResponse) and item.tool_calls:
            if not item.content:
                continue
            item = dataclasses.replace(item, tool_calls=())
        filtered_items.append(item)
    return tuple(filtered_items)


_CONVERSATION_HISTORY_START = "<CONVERSATION HISTORY>"
_CONVERSATION_HISTORY_END = "</CONVERSATION HISTORY>"


def nest_handoff_history(handoff_input_data: HandoffInputData) -> HandoffInputData:
    """Summarizes the previous transcript into a developer message for the next agent.

    The next agent sees the summary followed by the latest user message. Summaries from earlier
    nested handoffs are unpacked first, so repeated handoffs don't nest summaries inside each
    other.
    """

    transcript = _flatten_nested_history_messages(list(handoff_input_data.all_items()))

    history_items: list[TResponseInputItem] = [_build_developer_message(transcript)]
    latest_user = _find_latest_user_turn(transcript)
    if latest_user is not None:
        history_items.append(latest_user)

    return handoff_input_data.clone(
        input_history=tuple(history_items),
        pre_handoff_items=(),
        new_items=(),
    )


def _build_developer_message(transcript: list[RunItem]) -> TextMessage:
    if transcript:
        summary_lines = [
            f"{idx + 1}. {_format_transcript_item(item)}" for idx, item in enumerate(transcript)
        ]
    else:
        summary_lines = ["(no previous turns recorded)"]

    content = "\n".join([_CONVERSATION_HISTORY_START, *summary_lines, _CONVERSATION_HISTORY_END])
    return TextMessage(role="developer", content=content)


def _format_transcript_item(item: RunItem) -> str:
    if isinstance(item, TextMessage):
        return f"{item.role}: {item.content}" if item.content else item.role
    if isinstance(item, ModelResponse):
        prefix = f"assistant ({item.agent_name})" if item.agent_name else "assistant"
        parts = [item.content] if item.content else []
        parts.extend(f"[called {call.name}({call.arguments})]" for call in item.tool_calls)
        return f"{prefix}: {' '.join(parts)}" if parts else prefix
    if isinstance(item, ToolCall):
        return f"tool_call: {item.name}({item.arguments})"
    return f"tool_response: {item.output}"


def _find_latest_user_turn(transcript: list[RunItem]) -> TextMessage | None:
    for item in reversed(transcript):
        if isinstance(item, TextMessage) and item.role == "user":
            return item
    return None


def _flatten_nested_history_messages(items: list[RunItem]) -> list[RunItem]:
    flattened: list[RunItem] = []
    for item in items:
        nested_transcript = _extract_nested_history_transcript(item)
        if nested_transcript is not None:
            flattened.extend(nested_transcript)
            continue
        flattened.append(item)
    return flattened


def _extract_nested_history_transcript(item: RunItem) -> list[RunItem] | None:
    if not isinstance(item, TextMessage) or item.role != "developer":
        return None
    start_idx = item.content.find(_CONVERSATION_HISTORY_START)
    end_idx = item.content.find(_CONVERSATION_HISTORY_END)
    if start_idx == -1 or end_idx == -1 or end_idx <= start_idx:
        return None
    body = item.content[start_idx + len(_CONVERSATION_HISTORY_START) : end_idx]

    parsed: list[RunItem] = []
    for line in body.splitlines():
        parsed_item = _parse_summary_line(line)
        if parsed_item is not None:
            parsed.append(parsed_item)
    return parsed


def _parse_summary_line(line: str) -> TextMessage | None:
    stripped = line.strip()
    if not stripped or stripped == "(no previous turns recorded)":
        return None
    dot_index = stripped.find(".")
    if dot_index != -1 and stripped[:dot_index].isdigit():
        stripped = stripped[dot_index + 1 :].lstrip()
    role_part, sep, remainder = stripped.partition(":")
    role = role_part.split("(")[0].strip()
    if not role:
        return None
    if not sep:
        return TextMessage(role=role, content="")
    if role in ("tool_call", "tool_response"):
        # Tool traffic is kept as part of the summary text; it can't be replayed as items.
        return TextMessage(role="assistant", content=stripped)
    return TextMessage(role=role, content=remainder.strip())

#!/usr/bin/env python3
"""Example 1: Compact a long canvas conversation.

Builds a design session where every assistant reply attaches a generated
component, compacts it against a small token budget and saves the result.
"""

import asyncio
from pathlib import Path

from canvas_context import (
    ConversationContext,
    FileCompactionStore,
    Message,
    MessageRole,
    UIComponent,
    get_context_config,
)
from canvas_context.observability import LogConfig, LogLevel, configure_logging


# ============================================================================
# Configuration
# ============================================================================

CONFIG = get_context_config(
    budget={
        "total_ceiling": 4000,
        "system_prompt_ceiling": 400,
        "conversation_ceiling": 2000,
        "components_ceiling": 600,
        "reserved_for_response": 1000,
    },
    compression={"recent_message_retention_count": 6},
)


def build_session(conversation: ConversationContext, turns: int = 12) -> None:
    for turn in range(turns):
        conversation.add_message(
            Message(
                id=f"user-{turn}",
                role=MessageRole.USER,
                content=f"Turn {turn}: rework section {turn} of the dashboard " + "please " * 25,
            )
        )
        component = UIComponent(
            id=f"comp-{turn}",
            type="Chart" if turn % 2 else "Table",
            props={"title": f"Section {turn}", "timestamp": turn},
        )
        conversation.add_message(
            Message(
                id=f"assistant-{turn}",
                role=MessageRole.ASSISTANT,
                content=f"Updated component: {component.type}",
                attached_components=[component],
            )
        )


async def main():
    configure_logging(LogConfig(level=LogLevel.INFO))

    conversation = ConversationContext(
        "example-1", system_prompt="You generate dashboard UIs.", config=CONFIG
    )
    build_session(conversation)

    usage = conversation.usage()
    print(f"Before: {usage.total} tokens ({usage.usage_percentage:.1f}% of {usage.limit})")

    result = conversation.compact()
    print(f"After: {result.compacted_token_count.total} tokens")
    print(f"Compression ratio: {result.compression_ratio:.2f}")
    print(f"Messages folded into summary: {result.messages_compacted}")
    print(f"Dropped components: {result.dropped_component_ids}")
    print()
    print(result.compacted_system_prompt)

    store = FileCompactionStore(Path(".canvas_context"))
    await store.save(conversation.to_record())
    print(f"\nSaved records: {await store.list_ids()}")

    stats = conversation.registry.stats()
    print(f"Registry: {stats.total_components} components, {stats.duplicates_avoided} duplicates avoided")


if __name__ == "__main__":
    asyncio.run(main())

"""Minimal demonstration of the conversation orchestrator."""

import sys

from playground_core import create_orchestrator

if __name__ == "__main__":
    provider = sys.argv[1] if len(sys.argv) > 1 else None
    orchestrator = create_orchestrator(provider)
    orchestrator.subscribe(
        lambda event: print(f"[{event.kind}] {event.payload}") if event.kind.startswith("function_call") else None
    )
    question = "What is the weather in Taipei and Tokyo?"
    reply = orchestrator.send(question)
    print("User:", question)
    print("Agent:", reply.content if reply else "")

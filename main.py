#!/usr/bin/env python3
"""
ThreadVault - retrieval-augmented dialogue threads
Main entry point for the interactive dialogue console.
"""

import argparse
import asyncio

from loguru import logger

from threadvault.assistants.models.anthropic import AnthropicModelsEnum
from threadvault.config.settings import load_settings
from threadvault.context import VaultContext
from threadvault.monitoring.logger import configure_logging


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Continue a ThreadVault dialogue")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--thread", help="Id of the thread to continue")
    target.add_argument("--new", metavar="TITLE", help="Start a new thread")
    parser.add_argument("--description", help="Description for a new thread")
    parser.add_argument("--k", type=int, default=5, help="Context items to retrieve")
    parser.add_argument("--max-tokens", type=int, default=4096)
    parser.add_argument(
        "--model",
        default=None,
        choices=[m.model_name for m in AnthropicModelsEnum],
        help="Anthropic model (default: DIALOGUE_MODEL or Claude 3.7 Sonnet)",
    )
    return parser.parse_args()


async def run(args: argparse.Namespace) -> None:
    settings = load_settings()
    configure_logging(settings.log_level, settings.log_format, settings.log_file)
    context = VaultContext(settings)

    if args.new:
        thread = await context.store.create_thread(args.new, args.description)
        print(f"Started thread {thread.id}")
    else:
        thread = await context.store.find_thread(args.thread)

    orchestrator = context.dialogue_orchestrator()
    model = args.model or settings.dialogue_model
    logger.info(f"Continuing thread '{thread.title}' with model {model}")

    while True:
        try:
            user_input = await asyncio.to_thread(input, "MESSIAH: ")
        except (EOFError, KeyboardInterrupt):
            print("\nExiting ThreadVault...")
            break

        if user_input.strip().lower() in ["exit", "quit"]:
            break
        if not user_input.strip():
            continue

        try:
            response = await orchestrator.continue_dialogue(
                {
                    "thread_id": thread.id,
                    "messiah_content": user_input,
                    "retrieval_k": args.k,
                    "model": model,
                    "max_tokens": args.max_tokens,
                }
            )
        except Exception as e:
            logger.error(f"Error continuing dialogue: {e}")
            print("Sorry, the reflection could not be generated. Please try again.")
            continue

        print(f"\nREFLECTION: {response.reflection_turn.content}\n")


def main():
    """Main entry point for the ThreadVault console."""
    asyncio.run(run(parse_args()))


if __name__ == "__main__":
    main()

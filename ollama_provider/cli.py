"""CLI entry point for ollama-provider.

Entry point:
    ollama-provider models [--json]
    ollama-provider chat --model <id> [--system <text>] [--image <path> ...] <prompt>
    ollama-provider embed --model <id> <text> [<text> ...]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-provider",
        description="Talk to a local Ollama server through the provider handler.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--url", default=None, help="Ollama server URL (default: $OLLAMA_HOST or http://localhost:11434)"
    )
    sub = parser.add_subparsers(dest="command")

    # models
    models_p = sub.add_parser("models", help="List available models")
    models_p.add_argument(
        "--json", action="store_true", dest="json_output", help="JSON array output"
    )

    # chat
    chat_p = sub.add_parser("chat", help="Stream a chat completion")
    chat_p.add_argument("--model", required=True, help="Model ID")
    chat_p.add_argument("--system", default=None, help="System prompt")
    chat_p.add_argument("--image", action="append", default=[], help="Image file to attach (repeatable)")
    chat_p.add_argument(
        "--option", action="append", default=[], metavar="KEY=VALUE",
        help="Backend option, e.g. temperature=0.2 or num_ctx=8192 (repeatable)",
    )
    chat_p.add_argument("prompt", help="User prompt")

    # embed
    embed_p = sub.add_parser("embed", help="Embed one or more strings")
    embed_p.add_argument("--model", required=True, help="Embedding model ID")
    embed_p.add_argument("texts", nargs="+", help="Strings to embed")

    return parser


def _parse_options(pairs: list[str]) -> Optional[dict]:
    """Parse KEY=VALUE pairs, decoding values as JSON where possible."""
    options = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid option (expected KEY=VALUE): {pair}")
        try:
            options[key] = json.loads(value)
        except json.JSONDecodeError:
            options[key] = value
    return options or None


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_models(url: str, json_output: bool = False) -> int:
    """List available models. Returns exit code."""
    from ollama_provider.errors import OllamaError
    from ollama_provider.handler import OllamaHandler
    from ollama_provider.schema import ProviderRef

    handler = OllamaHandler()
    try:
        models = await handler.fetch_models(ProviderRef(url=url))
    except OllamaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        handler.dispose()

    if json_output:
        json.dump(models, sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        for model_id in models:
            print(model_id)
    return 0


async def _cmd_chat(
    url: str,
    model: str,
    prompt: str,
    system: Optional[str] = None,
    images: Optional[list[str]] = None,
    options: Optional[dict] = None,
) -> int:
    """Stream a completion to stdout. Returns exit code."""
    from ollama_provider.handler import OllamaHandler
    from ollama_provider.messages import encode_image_to_data_url
    from ollama_provider.schema import ProviderRef
    from ollama_provider.streaming import ExecutionState

    try:
        encoded = [encode_image_to_data_url(path) for path in images or []]
    except OSError as e:
        print(f"Error reading image: {e}", file=sys.stderr)
        return 1

    handler = OllamaHandler()
    errors: list[Exception] = []

    def on_data(chunk: str, _accumulated: str) -> None:
        sys.stdout.write(chunk)
        sys.stdout.flush()

    handle = handler.execute({
        "provider": ProviderRef(url=url, model=model),
        "prompt": prompt,
        "system_prompt": system,
        "images": encoded or None,
        "options": options,
    })
    handle.on_data(on_data)
    handle.on_end(lambda _text: sys.stdout.write("\n"))
    handle.on_error(errors.append)

    try:
        state = await handle.wait()
    except asyncio.CancelledError:
        handle.abort()
        print("\nAborted.", file=sys.stderr)
        return 130
    finally:
        handler.dispose()

    if state == ExecutionState.FAILED:
        print(f"Error: {errors[0] if errors else 'generation failed'}", file=sys.stderr)
        return 1
    return 0


async def _cmd_embed(url: str, model: str, texts: list[str]) -> int:
    """Print embeddings as JSON. Returns exit code."""
    from ollama_provider.errors import OllamaProviderError
    from ollama_provider.handler import OllamaHandler
    from ollama_provider.schema import ProviderRef

    handler = OllamaHandler()
    try:
        embeddings = await handler.embed({
            "provider": ProviderRef(url=url, model=model),
            "input": texts if len(texts) > 1 else texts[0],
        })
    except OllamaProviderError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        handler.dispose()

    json.dump(embeddings, sys.stdout)
    sys.stdout.write("\n")
    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    from dotenv import load_dotenv
    load_dotenv()

    from ollama_provider.config import get_ollama_url
    url = args.url or get_ollama_url()
    logger.debug(f"Using Ollama server at {url}")

    # Dispatch
    try:
        if args.command == "models":
            code = asyncio.run(_cmd_models(url, json_output=args.json_output))
        elif args.command == "chat":
            try:
                options = _parse_options(args.option)
            except ValueError as e:
                print(f"Error: {e}", file=sys.stderr)
                sys.exit(2)
            code = asyncio.run(_cmd_chat(
                url=url,
                model=args.model,
                prompt=args.prompt,
                system=args.system,
                images=args.image,
                options=options,
            ))
        elif args.command == "embed":
            code = asyncio.run(_cmd_embed(url, model=args.model, texts=args.texts))
        else:
            parser.print_help()
            code = 1
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()

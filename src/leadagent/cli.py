"""LeadAgent CLI — chat with a running API, search leads directly, or serve."""

import argparse
import asyncio
import logging
import sys

from leadagent.config import settings
from leadagent.observability.tracing import init_tracing


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="leadagent", description="Lead-generation chat assistant")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="send a message to the chat API and stream the reply")
    chat.add_argument("message", nargs="+")
    chat.add_argument("--api-url", default=None, help=f"default: {settings.chat_api_url}")

    leads = sub.add_parser("leads", help="search BatchData directly and print formatted leads")
    leads.add_argument("--state")
    leads.add_argument("--city")
    leads.add_argument("--zip")
    leads.add_argument("--street")
    leads.add_argument("--query")

    serve = sub.add_parser("serve", help="run the API server")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    return parser


async def _chat(message: str, api_url: str | None) -> int:
    from leadagent.client.stream import ChatSession

    session = ChatSession(api_url=api_url)
    await session.send(message)

    reply = session.messages[-1] if len(session.messages) > 1 else None
    if reply is None:
        return 1
    print(reply.text)
    return 1 if reply.is_error else 0


async def _leads(args: argparse.Namespace) -> int:
    from leadagent.core.errors import LeadAgentError
    from leadagent.pipeline.formatter import format_leads
    from leadagent.retrieval.leads import search_leads

    try:
        result = await search_leads(
            state=args.state, city=args.city, zip=args.zip, street=args.street, query=args.query,
        )
    except LeadAgentError as e:
        print(f"Error: {getattr(e, 'user_message', None) or e}", file=sys.stderr)
        return 1

    print(f"\nLeads ({len(result.leads)} of {result.total}, page {result.page})")
    print(f"{'=' * 50}")
    print(format_leads(result.leads, {"city": args.city, "state": args.state}))
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        uvicorn.run("leadagent.api.main:app", host=args.host, port=args.port)
        return

    if args.command == "chat":
        code = asyncio.run(_chat(" ".join(args.message), args.api_url))
    else:
        init_tracing(settings.mlflow_tracking_uri, settings.mlflow_experiment_name)
        code = asyncio.run(_leads(args))
    sys.exit(code)

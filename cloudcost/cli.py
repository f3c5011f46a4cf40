#!/usr/bin/env python3
import argparse, asyncio, json, logging

from .settings import settings


def serve(args):
    mode = args.mode or settings.MCP_MODE
    if mode == "stdio":
        from .stdio_runner import main as run_stdio
        run_stdio()
        return
    import uvicorn
    uvicorn.run("cloudcost.main:app", host=args.host, port=args.port or settings.PORT)


def updater(args):
    import uvicorn
    uvicorn.run("cloudcost.updater.service:app", host=args.host, port=args.port or settings.UPDATE_PORT)


def update(args):
    from .updater.orchestrator import UpdateOrchestrator
    logging.basicConfig(level=logging.INFO)
    result = asyncio.run(UpdateOrchestrator(pricing_dir=args.pricing_dir).run_cycle())
    print(json.dumps(result.model_dump(), indent=2))


def classify(args):
    from .engine.classifier import classify_task
    result = classify_task(" ".join(args.text), allow_fallback=not args.no_fallback)
    print(json.dumps(result.to_dict(), indent=2))


def tools(args):
    from .tools.registry import list_tools
    for tool in list_tools():
        print(f"{tool['name']:<32} {tool['title']}")


def build_parser():
    p = argparse.ArgumentParser("cloudcost-admin")
    s = p.add_subparsers(dest="cmd", required=True)

    sv = s.add_parser("serve", help="run the MCP server")
    sv.add_argument("--mode", choices=["http", "stdio"])
    sv.add_argument("--host", default="0.0.0.0")
    sv.add_argument("--port", type=int)
    sv.set_defaults(func=serve)

    u = s.add_parser("updater", help="run the pricing updater service")
    u.add_argument("--host", default="0.0.0.0")
    u.add_argument("--port", type=int)
    u.set_defaults(func=updater)

    o = s.add_parser("update", help="run one pricing update cycle and print the report")
    o.add_argument("--pricing-dir", default=None)
    o.set_defaults(func=update)

    c = s.add_parser("classify", help="classify a task description")
    c.add_argument("text", nargs="+")
    c.add_argument("--no-fallback", action="store_true")
    c.set_defaults(func=classify)

    t = s.add_parser("tools", help="list registered tools")
    t.set_defaults(func=tools)
    return p


def main(argv=None):
    p = build_parser()
    args = p.parse_args(argv); args.func(args)


if __name__ == "__main__":
    main()

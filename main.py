"""Command-line entry point: open a URL and print its structure, Markdown or a tool result."""
import argparse
import asyncio
import json
import sys

from loguru import logger

from pagelens.agent.tool_executor import ToolExecutor
from pagelens.browser.engine import BrowserEngine
from pagelens.config import load_config
from pagelens.utils.logging_config import setup_logging


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect a web page.")
    parser.add_argument("url", help="Page to open")
    parser.add_argument(
        "--mode",
        choices=("structure", "markdown", "query", "tool"),
        default="structure",
        help="What to print (default: structure)",
    )
    parser.add_argument("--max-depth", type=int, default=None, help="Structure depth budget")
    parser.add_argument("--selector", default=None, help="CSS selector to scope the output")
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--cdp-url", default=None, help="Attach to a running browser instead")
    parser.add_argument("--tool", default=None, help="Tool to run in tool mode")
    parser.add_argument("--params", default=None, help="Tool parameters as a JSON object")
    return parser.parse_args(argv)


async def _run_tool(inspector, args: argparse.Namespace) -> int:
    if not args.tool:
        logger.error("--tool is required in tool mode")
        return 2
    try:
        params = json.loads(args.params) if args.params else {}
    except json.JSONDecodeError as exc:
        logger.error(f"Invalid --params JSON: {exc}")
        return 2

    result = await ToolExecutor(inspector).execute(args.tool, params)
    if not result.success:
        logger.error(result.error)
        return 1
    print(result.observation)
    return 0


async def run(args: argparse.Namespace) -> int:
    config = load_config()
    setup_logging(config.log_level, config.log_dir)

    engine = BrowserEngine(config)
    if args.cdp_url:
        await engine.connect_cdp(args.cdp_url)
    else:
        await engine.launch(headless=not args.headful)
    try:
        await engine.navigate(args.url)
        inspector = engine.new_inspector()

        if args.mode == "markdown":
            print(await inspector.get_page_content())
            return 0

        if args.mode == "tool":
            return await _run_tool(inspector, args)

        if args.mode == "query":
            if not args.selector:
                logger.error("--selector is required in query mode")
                return 2
            result = await inspector.get_element_info(args.selector)
            print(json.dumps(result.to_dict(), indent=2))
            return 0 if result.success else 1

        result = await inspector.get_structure(max_depth=args.max_depth, selector=args.selector)
        if not result.success:
            logger.error(result.error)
            return 1
        print(result.structure)
        return 0
    finally:
        await engine.close()


def main():
    sys.exit(asyncio.run(run(_parse_args())))


if __name__ == "__main__":
    main()

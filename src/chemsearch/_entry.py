"""Smart entry point: MCP server when spawned over stdio (or with --mcp), CLI otherwise."""

import sys

MCP_FLAG = "--mcp"


def wants_mcp(argv, stdin_is_tty):
    args = list(argv[1:])
    if args == [MCP_FLAG]:
        return True
    return not args and not stdin_is_tty


def main():
    if wants_mcp(sys.argv, sys.stdin.isatty()):
        from chemsearch.mcp.server import main as mcp_main

        mcp_main()
        return

    from chemsearch.cli.main import app

    app(prog_name="chemsearch")


if __name__ == "__main__":
    main()

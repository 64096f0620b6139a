"""Campus Library circulation server - entry point

Serves one of two transports, chosen by ``CAMPUS_LIBRARY_TRANSPORT``:
- http: the REST API for the browser front end, via uvicorn
- stdio: the circulation tools over MCP, via FastMCP
"""

import logging
import signal
import sys
from typing import Any

import uvicorn
from fastmcp import FastMCP

from .config import get_config
from .database.session import get_db_manager
from .observability import initialize_observability
from .tools import all_tools

# stderr for logs, stdout is reserved for the MCP protocol
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stderr)],
)

logger = logging.getLogger(__name__)

config = get_config()

mcp = FastMCP(
    name=config.server_name,
    version=config.server_version,
    instructions=(
        "Campus Library circulation server. Borrow and return books by their unique "
        "code, list the books you can see, and (as an admin) report unreturned books "
        "per grade. Every tool needs the session token returned by the login endpoint."
    ),
)

for tool in all_tools:
    logger.debug("Registering tool: %s", tool["name"])
    try:
        mcp.tool(
            name=tool["name"],
            description=tool["description"],
        )(tool["handler"])
    except Exception:
        logger.exception("Failed to register tool %s", tool["name"])
        raise

logger.info("Registered %d tools", len(all_tools))


def run_stdio_server() -> None:
    """Run the MCP tools over stdio."""
    logger.info("Starting %s v%s on stdio transport", config.server_name, config.server_version)

    if not config.debug:
        logging.getLogger("fastmcp").setLevel(logging.WARNING)

    def signal_handler(signum: int, _frame: Any) -> None:
        logger.info("Received signal %s, initiating shutdown...", signum)
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    db_manager = get_db_manager()
    db_manager.init_database()
    try:
        mcp.run(transport="stdio")
    finally:
        db_manager.close()


def run_http_server() -> None:
    """Run the REST API. The app's lifespan creates and closes the database."""
    logger.info(
        "Starting %s v%s on http://%s:%d",
        config.server_name,
        config.server_version,
        config.http_host,
        config.http_port,
    )
    uvicorn.run(
        "campus_circulation.api:app",
        host=config.http_host,
        port=config.http_port,
        log_level=config.log_level.lower(),
    )


def main() -> None:
    """Main entry point for the ``campus-library`` command."""
    logging.getLogger().setLevel(logging.DEBUG if config.is_development else config.log_level)
    initialize_observability()

    try:
        logger.info("=" * 60)
        logger.info("Campus Library Circulation Server")
        logger.info("Version: %s", config.server_version)
        logger.info("Transport: %s", config.transport)
        logger.info("Database: %s", config.database_path)
        logger.info("=" * 60)

        if config.transport == "stdio":
            run_stdio_server()
        else:
            run_http_server()

    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Failed to start server")
        sys.exit(1)


if __name__ == "__main__":
    main()

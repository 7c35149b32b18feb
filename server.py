import logging

from fastmcp import FastMCP

from ado_dashboard import __version__, tools
from ado_dashboard.config import DashboardConfig
from ado_dashboard.dashboard import DashboardAggregator
from ado_dashboard.telemetry import shutdown_telemetry

# Configure basic logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

mcp: FastMCP = FastMCP(name="ado-dashboard", version=__version__)

# Clients are created per request, so the server starts without credentials.
aggregator = DashboardAggregator(config=DashboardConfig.from_env())

tools.register_dashboard_tools(mcp, aggregator)


def main():
    """Main entry point for the ado-dashboard server."""
    try:
        mcp.run()
    finally:
        shutdown_telemetry()


if __name__ == "__main__":  # pragma: no cover
    main()

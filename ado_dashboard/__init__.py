"""Azure DevOps pipeline dashboard aggregation package."""

from dotenv import load_dotenv

__version__ = "0.1.0"

load_dotenv()

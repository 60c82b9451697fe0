"""litreview - literature catalog manager.

A tool for collecting research papers from PDF, JSON and CSV files,
browsing them locally, and publishing the catalog as static data
with PDFs served from GitHub Releases.
"""

__version__ = "1.0.0"

from litreview.config import Settings
from litreview.models.paper import Paper

__all__ = ["Paper", "Settings", "__version__"]

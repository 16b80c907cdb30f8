"""
Allow running as: python -m peekdb_agent
"""

import sys

from peekdb_agent.main import main

if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python
"""Sync Confluence and web documentation into local knowledge bases.

Usage:
    python syncKb.py refresh infra                  # Refresh one KB
    python syncKb.py refresh infra --type web       # Refresh only its web pages
    python syncKb.py refresh-all                    # Refresh every KB with a manifest
    python syncKb.py add-url infra https://...      # Add a web page to a KB
    python syncKb.py list                           # List knowledge bases
"""

from core.sync_orchestrator import main

if __name__ == "__main__":
    main()

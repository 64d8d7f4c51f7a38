# =============================================================================
# synchat/cli/__main__.py - Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m synchat.cli <command> ...
#
# Delegates to the knowledge-base CLI in ingest.py.
# =============================================================================

"""Allow ``python -m synchat.cli`` execution."""

import sys

from synchat.cli.ingest import main

sys.exit(main())

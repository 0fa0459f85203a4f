# ==============================================================================
#                  © 2025 Dedalus Labs, Inc. and affiliates
#                            Licensed under MIT
#                github.com/dedalus-labs/mcpharness/LICENSE
# ==============================================================================

from __future__ import annotations

from .cli import main


if __name__ == "__main__":
    raise SystemExit(main())

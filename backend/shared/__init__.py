"""
Shared module for common code across the REST API, the worker and the CLI.

STRUCTURE:
- shared.security: Webhook signature verification
  - webhook_signature.py: Mercado Pago Feed v2 HMAC check

- shared.infrastructure: Storage and messaging
  - db.py: Database resource, sessions, safe_commit()
  - redis_pool.py: Async Redis pool
  - jobs.py: Redis-backed job queue
  - locks.py: Keyed asyncio locks
  - correlation.py: Request correlation ids

- shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Status enums and transition tables

- shared.utils: Utilities
  - exceptions.py: Processing failures with auto-logging
  - money.py: Decimal helpers

IMPORT EXAMPLES:
    from shared.infrastructure.db import Database, get_db, safe_commit
    from shared.config.settings import settings
    from shared.config.constants import OrderStatus, can_transition_order
    from shared.utils.exceptions import ProviderUnavailableError
"""

# This module provides no re-exports.
# All imports should use the canonical paths as documented above.

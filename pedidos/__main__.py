from __future__ import annotations

import argparse
import getpass

import uvicorn

from pedidos.config import get_settings
from pedidos.db.session import Database
from pedidos.observability.logging import configure_logging
from pedidos.services.auth_service import hash_password


def main() -> None:
    parser = argparse.ArgumentParser(prog="pedidos", description="Order-taking API for delivery")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=3000)
    serve.add_argument("--reload", action="store_true")

    sub.add_parser("init-db", help="Create tables on DATABASE_URL (use alembic in production)")
    sub.add_parser("hash-password", help="Print a bcrypt hash for API_PASS_HASH")

    args = parser.parse_args()
    settings = get_settings()
    configure_logging(settings.log_level)

    if args.command == "serve":
        uvicorn.run(
            "pedidos.main:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=args.reload,
            log_config=None,
        )
    elif args.command == "init-db":
        database = Database(settings.database_url)
        try:
            database.create_all()
        finally:
            database.dispose()
    elif args.command == "hash-password":
        password = getpass.getpass("Password: ")
        print(hash_password(password))


if __name__ == "__main__":
    main()

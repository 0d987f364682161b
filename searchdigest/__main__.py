"""Entry point для запуска через python -m searchdigest.

Запускает uvicorn сервер с FastAPI приложением.
Воркер дайджестов запускается в lifespan приложения.

Использование:
    python -m searchdigest              # Production mode (без hot-reload)
    python -m searchdigest --dev        # Development mode (с hot-reload)
    python -m searchdigest --help       # Показать справку
"""

import argparse

import uvicorn

from searchdigest.config.settings import settings


def main() -> None:
    """Запустить приложение через uvicorn."""
    parser = argparse.ArgumentParser(
        description="Search Digest — планировщик дайджестов сохранённых поисков",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Примеры:
    python -m searchdigest              # Production mode
    python -m searchdigest --dev        # Development mode с hot-reload
    python -m searchdigest --port 3000  # Указать кастомный порт
        """,
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=settings.app.debug,
        help="Включить hot-reload для разработки (или APP__DEBUG=true)",
    )
    parser.add_argument(
        "--host",
        default=settings.app.host,
        help=f"Хост для сервера (по умолчанию: {settings.app.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.app.port,
        help=f"Порт для сервера (по умолчанию: {settings.app.port})",
    )
    args = parser.parse_args()

    if args.dev:
        # Development mode с hot-reload
        uvicorn.run(
            "searchdigest.main:app",
            host=args.host,
            port=args.port,
            reload=True,
            reload_includes=["searchdigest/**/*.py", "config.yaml"],
            reload_excludes=[".venv/**", "data/**", "tests/**", ".git/**"],
        )
    else:
        uvicorn.run(
            "searchdigest.main:app",
            host=args.host,
            port=args.port,
            reload=False,
        )


if __name__ == "__main__":
    main()

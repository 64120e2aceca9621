#!/usr/bin/env python3
"""
Launch the Delivery Recon API under uvicorn

Examples:
  python -m delivery_recon.cli.run                        # dev profile, reload on
  python -m delivery_recon.cli.run --profile prod --port 8080
  SPRING_PROFILES_ACTIVE=stage python -m delivery_recon.cli.run --no-reload
"""
import argparse
import os

import uvicorn

PROFILE_ENV_VARS = ('SPRING_PROFILES_ACTIVE', 'APP_PROFILE', 'APP_ENV')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Start the Delivery Recon API',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        '--profile', '--env',
        dest='profile',
        choices=['dev', 'stage', 'prod'],
        help='Active profile; defaults to SPRING_PROFILES_ACTIVE, APP_PROFILE or APP_ENV, then dev'
    )
    parser.add_argument('--host', help='Bind address (default: server.host)')
    parser.add_argument('--port', type=int, help='Port (default: server.port)')
    reload_group = parser.add_mutually_exclusive_group()
    reload_group.add_argument('--reload', dest='reload', action='store_true', default=None,
                              help='Force auto-reload on')
    reload_group.add_argument('--no-reload', dest='reload', action='store_false',
                              help='Force auto-reload off')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    # The profile has to be in the environment before config is first imported
    if args.profile:
        for name in PROFILE_ENV_VARS:
            os.environ[name] = args.profile

    from delivery_recon.core.config import config
    from delivery_recon.core.environment import detect_environment

    env = detect_environment()
    host = args.host or config.uvicorn_host
    port = args.port or config.uvicorn_port
    reload = config.uvicorn_reload if args.reload is None else args.reload

    banner = [
        "🚀 Delivery Recon API",
        f"📦 Profile:  {env.value.upper()}",
        f"🗄️  Database: {config.database.dialect_label}",
        f"🌐 Listen:   http://{host}:{port}",
        f"🔄 Reload:   {'on' if reload else 'off'}",
        f"🔍 Health:   http://{host}:{port}/api/health",
    ]
    if config.enable_docs:
        banner.append(f"📚 Docs:     http://{host}:{port}/docs")
    print("=" * 60)
    print("\n".join(banner))
    print("=" * 60)

    if env.is_production and reload:
        print("⚠️  Auto-reload is enabled in PRODUCTION")

    uvicorn.run(
        "delivery_recon.main:app",
        host=host,
        port=port,
        reload=reload,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()

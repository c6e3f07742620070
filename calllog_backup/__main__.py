"""
Entry point for running calllog_backup as a module.

Usage:
    python -m calllog_backup --help
    python -m calllog_backup backup
    python -m calllog_backup restore --yes
"""

from calllog_backup.cli import cli

if __name__ == "__main__":
    cli()

"""Program entry point for the `journal-guard` console script."""
from __future__ import annotations
from src.cli.commands import cli

def main(argv=None):  # pragma: no cover - thin wrapper
	cli.main(args=argv, prog_name='journal-guard')

if __name__ == '__main__':  # pragma: no cover
	main()

"""
CLI entry point, when used as a module: `python -m terrapin`.

Useful for running the CLI from a source checkout without installing it.
"""
from terrapin import cli

if __name__ == '__main__':
    cli.main()

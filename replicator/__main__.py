"""
CLI entry point, when used as a module: `python -m replicator`.

Useful for debugging in the IDEs (use the start-mode "Module", module "replicator").
"""
from replicator import cli

if __name__ == '__main__':
    cli.main()

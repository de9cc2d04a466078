"""Entry point for ``python -m nomad_deployer``."""

from nomad_deployer.main import main

if __name__ == "__main__":
    main()

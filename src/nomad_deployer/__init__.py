"""nomad-deployer: rolls Nomad service jobs onto freshly built images."""

__version__ = "0.1.0"

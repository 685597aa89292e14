"""Topic manager for APT repositories: topic manifests, source lists and a command line."""

__version__ = "0.6.2"
"""labdeploy - cluster bootstrap and fan-out deployment over SSH."""

__version__ = "1.0.0"

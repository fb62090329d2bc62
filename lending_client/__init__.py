"""Client for provisioning accounts and submitting operations to a lending program."""

__version__ = "0.1.0"

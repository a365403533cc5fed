"""DeployMate — turns a natural-language infrastructure request into
OpenTofu files, a security review, a cost estimate and a CI pipeline."""

__version__ = "0.1.0"

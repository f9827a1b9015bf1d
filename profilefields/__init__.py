"""Profilefields: runtime-extensible attribute schemas for principal profiles.

Typed attribute definitions are validated, rendered, stored per
principal, audited and exchanged between deployments.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]

"""
epg.errors

Error taxonomy for the provisioning lifecycle.

Responsibilities:
- Give every failure mode an explicit, separable exception type.
- Let the CLI tell fatal lifecycle failures apart from programming errors.
"""

from __future__ import annotations


class EpgError(RuntimeError):
    """Base class for lifecycle failures; the CLI treats these as fatal."""


class EngineError(EpgError):
    pass


class InstallError(EngineError):
    pass


class StartError(EngineError):
    pass


class StopError(EngineError):
    pass


class AdminQueryError(EngineError):
    pass


class ExtensionInstallError(EpgError):
    pass


class PoolConnectError(EpgError):
    pass


class RequestQueryError(EpgError):
    """Raised per request; the router converts it into a 500 response."""


def describe(exc: BaseException) -> str:
    # Some OSErrors stringify to "", which would leave callers with an empty message.
    return str(exc) or exc.__class__.__name__


# --- Module Notes -----------------------------------------------------------
# Provisioning errors are never retried: each one is a misconfiguration or an
# environment problem that a retry cannot fix.

"""Payment gateway script host factory.

Provides get_script_host() / set_script_host() to swap implementations:
- FakeScriptHost for development and testing
- a browser-bridged host in deployments that render the real widget
"""

from payments.gateway.fake_adapter import FakeScriptHost
from payments.gateway.port import ScriptHost

_current_host: ScriptHost | None = None


def get_script_host() -> ScriptHost:
    """Return the current script host. Defaults to FakeScriptHost."""
    global _current_host
    if _current_host is None:
        _current_host = FakeScriptHost()
    return _current_host


def set_script_host(host: ScriptHost) -> None:
    """Override the active script host (useful for tests)."""
    global _current_host
    _current_host = host


def reset_script_host() -> None:
    """Reset to default script host."""
    global _current_host
    _current_host = None

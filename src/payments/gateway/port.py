"""Payment gateway ports (abstract interfaces).

The gateway ships as a client script that installs a global handle on the
page. ``ScriptHost`` abstracts the page (script tags and globals),
``GatewayHandle`` is what the script installs, and ``GatewayWidget`` is the
callback-driven checkout widget the handle constructs.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field


class ScriptLoadError(Exception):
    """The script's error event fired."""


@dataclass(frozen=True)
class ScriptTag:
    tag_id: str
    src: str


@dataclass(frozen=True)
class CheckoutOptions:
    """Options the widget is constructed with."""

    key: str
    amount: int
    currency: str
    order_id: str
    name: str = ""
    description: str = ""
    prefill: dict[str, str] = field(default_factory=dict)
    notes: dict[str, str] = field(default_factory=dict)
    theme: dict[str, str] = field(default_factory=dict)
    handler: Callable[[dict], None] | None = None
    on_dismiss: Callable[[], None] | None = None


class GatewayWidget(ABC):
    """Interactive checkout widget."""

    @abstractmethod
    def on(self, event: str, callback: Callable[[dict], None]) -> None:
        """Register a callback for a widget event (e.g. ``payment.failed``)."""
        ...

    @abstractmethod
    def open(self) -> None:
        """Start the interactive payment flow."""
        ...


class GatewayHandle(ABC):
    """Global object installed by the gateway script."""

    @abstractmethod
    def create_widget(self, options: CheckoutOptions) -> GatewayWidget: ...


class ScriptHost(ABC):
    """The page the gateway script is loaded into."""

    @abstractmethod
    def find_scripts(self, origin: str) -> list[ScriptTag]:
        """Script tags whose source is served from ``origin``."""
        ...

    @abstractmethod
    def remove_script(self, tag: ScriptTag) -> None: ...

    @abstractmethod
    def clear_global(self, name: str) -> None: ...

    @abstractmethod
    async def inject_script(self, src: str, global_name: str) -> GatewayHandle:
        """Append a script tag and wait for its load event.

        Returns the global installed under ``global_name``; raises
        ``ScriptLoadError`` if the error event fires instead.
        """
        ...

"""Mode router — decides how one inbound message is handled.

Precedence is declared as an ordered table of (Route, guard) pairs; the
first guard that matches wins. The router only decides. Side effects
belong to the dispatcher.

Order:
1. ADMIN_COMMAND           admin token in the message body
2. FREEFORM_ACTIVE         session is in freeform mode
3. FIRST_CONTACT           first message from this sender (content ignored)
4. MENU_RETURN             menu-return token
5. CAPABILITY_IN_PROGRESS  a demo is running; the message is conversation
6. CAPABILITY_SELECT       message is a capability token
7. FALLBACK                anything else shows the menu

5 before 6: inside a demo, a reply like "3" is an answer, not a new selection.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from simi.capabilities.registry import Capability, CapabilityRegistry
from simi.prompts import MENU_RETURN_TOKEN
from simi.sessions.models import Session, SessionMode


class Route(str, Enum):
    ADMIN_COMMAND = "admin_command"
    FREEFORM_ACTIVE = "freeform_active"
    FIRST_CONTACT = "first_contact"
    MENU_RETURN = "menu_return"
    CAPABILITY_IN_PROGRESS = "capability_in_progress"
    CAPABILITY_SELECT = "capability_select"
    FALLBACK = "fallback"


class AdminCommand(str, Enum):
    """Admin tokens, matched case-insensitively against the whole trimmed message."""
    RESET = "ADMIN RESET"
    FREEFORM = "ADMIN FREEFORM"
    DEMO = "ADMIN DEMO"


def parse_admin_command(text: str) -> AdminCommand | None:
    normalized = text.strip().upper()
    for command in AdminCommand:
        if normalized == command.value:
            return command
    return None


@dataclass(frozen=True)
class RoutingContext:
    """Everything a guard may inspect, computed once per message."""
    session: Session
    text: str
    command: AdminCommand | None
    capability: Capability | None


@dataclass(frozen=True)
class RouteDecision:
    route: Route
    command: AdminCommand | None = None
    capability: Capability | None = None


Guard = Callable[[RoutingContext], bool]

ROUTE_TABLE: tuple[tuple[Route, Guard], ...] = (
    (Route.ADMIN_COMMAND, lambda ctx: ctx.command is not None),
    (Route.FREEFORM_ACTIVE, lambda ctx: ctx.session.mode == SessionMode.FREEFORM),
    (Route.FIRST_CONTACT, lambda ctx: ctx.session.is_first_contact),
    (Route.MENU_RETURN, lambda ctx: ctx.text == MENU_RETURN_TOKEN),
    (Route.CAPABILITY_IN_PROGRESS, lambda ctx: ctx.session.active_capability is not None),
    (Route.CAPABILITY_SELECT, lambda ctx: ctx.capability is not None),
)


def route(session: Session, text: str, registry: CapabilityRegistry) -> RouteDecision:
    """Pick the route for one message. Never raises for user input."""
    ctx = RoutingContext(
        session=session,
        text=text,
        command=parse_admin_command(text),
        capability=registry.resolve(text),
    )
    for candidate, guard in ROUTE_TABLE:
        if guard(ctx):
            return RouteDecision(
                route=candidate,
                command=ctx.command,
                capability=ctx.capability if candidate == Route.CAPABILITY_SELECT else None,
            )
    return RouteDecision(route=Route.FALLBACK)

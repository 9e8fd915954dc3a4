"""Role-based permissions for FretMarine.

Design:
  - Each role has a set of grants written here, not in the DB.
  - Grants may use wildcards: "*" (everything) or "<resource>.*" (every
    action on one resource).
  - Wildcards are expanded once at import into finite frozensets
    (ROLE_PERMISSIONS), so a check is plain set membership.

Permission naming: `<resource>.<action>`
  Resources: client, cargo_item, container, payment, report, audit
"""

from __future__ import annotations


# ── All known permissions ───────────────────────────────────

RESOURCE_ACTIONS: dict[str, tuple[str, ...]] = {
    "client": ("read", "write", "delete", "export"),
    "cargo_item": ("read", "write", "delete", "scan", "assign"),
    "container": ("read", "write", "delete", "close", "reopen", "advance", "manifest"),
    "payment": ("read", "write", "cancel", "export"),
    "report": ("read", "financial", "export"),
    "audit": ("read", "run"),
}

ALL_PERMISSIONS: frozenset[str] = frozenset(
    f"{resource}.{action}"
    for resource, actions in RESOURCE_ACTIONS.items()
    for action in actions
)


# ── Role → grants (wildcards allowed) ───────────────────────

ROLE_GRANTS: dict[str, list[str]] = {
    "admin": ["*"],

    "manager": [
        "client.*",
        "cargo_item.*",
        "container.*",
        "payment.*",
        "report.*",
        "audit.read",
    ],

    "operator": [
        "client.read", "client.write",
        "cargo_item.read", "cargo_item.write", "cargo_item.scan", "cargo_item.assign",
        "container.read", "container.write", "container.manifest", "container.advance",
        "payment.read", "payment.write",
        "report.read",
    ],

    "accountant": [
        "client.read", "client.export",
        "cargo_item.read",
        "container.read", "container.manifest",
        "payment.*",
        "report.*",
    ],

    "guest": [
        "client.read",
        "cargo_item.read",
        "container.read",
    ],
}


# ── Resolution ──────────────────────────────────────────────

def expand_grants(grants: list[str]) -> frozenset[str]:
    """Expand wildcard grants into the finite set of permissions they cover.

    Unknown permissions and unknown resources are ignored.
    """
    expanded: set[str] = set()
    for grant in grants:
        if grant == "*":
            return ALL_PERMISSIONS
        if grant.endswith(".*"):
            resource = grant[:-2]
            expanded.update(
                f"{resource}.{action}" for action in RESOURCE_ACTIONS.get(resource, ())
            )
        elif grant in ALL_PERMISSIONS:
            expanded.add(grant)
    return frozenset(expanded)


ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    role: expand_grants(grants) for role, grants in ROLE_GRANTS.items()
}


def has_permission(role: str, required: str) -> bool:
    """Check whether a role's permission set satisfies a requirement."""
    return required in ROLE_PERMISSIONS.get(role, frozenset())

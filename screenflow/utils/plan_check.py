"""Plan check — deterministic structural validation of the Architect's screen plan.

The Architect is told to produce a tree (first screen is the root, every other
screen has exactly one incoming flow), but nothing forces the model to comply.
This module reports every deviation so callers can decide what to do with it.
"""

from screenflow.state import Flow, Screen


class PlanValidationError(ValueError):
    """Raised by validate_plan when the plan is not a well-formed screen tree."""

    def __init__(self, issues: list[str]):
        self.issues = issues
        super().__init__("Invalid plan: " + "; ".join(issues))


def check_plan(screens: list[Screen], flows: list[Flow]) -> list[str]:
    """Check whether the plan is a well-formed navigation tree.

    Returns a list of issue strings. Empty list = valid tree.
    """
    issues = []

    if not screens:
        issues.append("Plan has no screens.")
        return issues  # Can't check further without screens

    # --- Screen ids must be present and unique ---
    ids = []
    for i, screen in enumerate(screens):
        sid = screen.get("id", "")
        if not sid:
            issues.append(f"Screen {i} ('{screen.get('name', '?')}') has no id.")
            continue
        if sid in ids:
            issues.append(f"Duplicate screen id '{sid}'.")
            continue
        ids.append(sid)
    known = set(ids)

    # --- Flows must reference defined screens ---
    incoming: dict[str, list[str]] = {}
    adj: dict[str, list[str]] = {sid: [] for sid in ids}
    for flow in flows:
        src, dst = flow.get("from", ""), flow.get("to", "")
        fid = flow.get("id", "?")
        if src not in known:
            issues.append(f"Flow '{fid}' starts at unknown screen '{src}'.")
        if dst not in known:
            issues.append(f"Flow '{fid}' targets unknown screen '{dst}'.")
        if src not in known or dst not in known:
            continue
        if src == dst:
            issues.append(f"Flow '{fid}' loops on screen '{src}'.")
            continue
        incoming.setdefault(dst, []).append(src)
        adj[src].append(dst)

    # --- Tree shape: at most one incoming flow, none into the entry point ---
    for sid, sources in incoming.items():
        if len(sources) > 1:
            issues.append(
                f"Screen '{sid}' has {len(sources)} incoming flows "
                f"(from {', '.join(sources)}); convergent paths must be split into distinct screens."
            )

    root = ids[0] if ids else None
    if root and root in incoming:
        issues.append(f"Entry screen '{root}' has an incoming flow.")

    # --- Every screen reachable from the entry point ---
    if root and flows:
        reached = {root}
        stack = [root]
        while stack:
            node = stack.pop()
            for neighbor in adj.get(node, []):
                if neighbor not in reached:
                    reached.add(neighbor)
                    stack.append(neighbor)
        for sid in ids:
            if sid not in reached:
                issues.append(f"Screen '{sid}' is not reachable from entry screen '{root}'.")

    return issues


def validate_plan(screens: list[Screen], flows: list[Flow]) -> None:
    """Raise PlanValidationError if check_plan reports any issue."""
    issues = check_plan(screens, flows)
    if issues:
        raise PlanValidationError(issues)

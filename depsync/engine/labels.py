"""Labels applied to update pull requests."""

from depsync.config.settings import EngineConfig, PullRequestConfig
from depsync.models.domain import UpdateGroup

BULK_UPDATE_THRESHOLD = 5


def is_security_sensitive(name: str, fragments: list[str]) -> bool:
    lowered = name.lower()
    return any(fragment.lower() in lowered for fragment in fragments)


def generate_labels(group: UpdateGroup, pr_config: PullRequestConfig, engine_config: EngineConfig) -> list[str]:
    """Build the label list for a group's pull request.

    ``dependencies`` always comes first, followed by each update type
    present (most severe first), ``bulk-update`` for large groups,
    ``security`` when a security-sensitive package is touched, then the
    configured static labels. Duplicates are dropped, order is kept.
    """
    labels = ["dependencies"]

    present = sorted({u.update_type for u in group.updates}, key=lambda t: -t.severity)
    labels.extend(str(t) for t in present)

    if len(group.updates) > BULK_UPDATE_THRESHOLD:
        labels.append("bulk-update")

    if any(is_security_sensitive(u.name, engine_config.security_packages) for u in group.updates):
        labels.append("security")

    labels.extend(pr_config.labels)

    return list(dict.fromkeys(labels))

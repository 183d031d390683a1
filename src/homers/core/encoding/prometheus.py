"""Prometheus text format encoder for snapshots.

Output is deterministic: families are sorted by name, every catalogued family
is documented even when it has no samples, and sample lines are sorted by
their rendered label block. The same snapshot content always yields the same
bytes regardless of sample order.
"""

from collections import defaultdict

from homers.core.errors import EncodingError
from homers.core.metrics import CATALOGUE
from homers.core.models import MetricSample, Snapshot


def _escape_label_value(value: str) -> str:
    """Escape a label value for the exposition format."""
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _format_labels(labels: dict[str, str]) -> str:
    """Render labels sorted by key, e.g. {a="1",b="2"}."""
    if not labels:
        return ""
    pairs = [f'{key}="{_escape_label_value(labels[key])}"' for key in sorted(labels)]
    return "{" + ",".join(pairs) + "}"


def _format_value(value: float) -> str:
    """Render a value independently of the process locale."""
    return repr(float(value))


def _group_samples(snapshot: Snapshot) -> dict[str, list[MetricSample]]:
    """Group samples by family, rejecting duplicates and unknown families."""
    seen: set[tuple[str, tuple[tuple[str, str], ...]]] = set()
    grouped: dict[str, list[MetricSample]] = defaultdict(list)
    for sample in snapshot.samples:
        if sample.name not in CATALOGUE:
            raise EncodingError(f"sample for undocumented family {sample.name}")
        key = sample.series_key
        if key in seen:
            raise EncodingError(f"duplicate series {sample.name}{dict(key[1])}")
        seen.add(key)
        grouped[sample.name].append(sample)
    return grouped


def encode(snapshot: Snapshot) -> str:
    """Encode a snapshot to Prometheus text exposition format.

    Args:
        snapshot: The snapshot to encode.

    Returns:
        Prometheus text format string ending with a newline.

    Raises:
        EncodingError: If the snapshot holds a duplicate series or a sample
            of an uncatalogued family.
    """
    grouped = _group_samples(snapshot)
    lines: list[str] = []
    for name in sorted(CATALOGUE):
        family = CATALOGUE[name]
        lines.append(f"# HELP {name} {family.help}")
        lines.append(f"# TYPE {name} gauge")
        rendered = sorted(
            (_format_labels(dict(sample.labels)), _format_value(sample.value))
            for sample in grouped.get(name, [])
        )
        lines.extend(f"{name}{labels} {value}" for labels, value in rendered)
    return "\n".join(lines) + "\n"


def encode_openmetrics(snapshot: Snapshot) -> str:
    """Encode a snapshot to OpenMetrics text format.

    Gauges share the Prometheus rendering; OpenMetrics adds the mandatory
    terminating # EOF line.
    """
    return encode(snapshot) + "# EOF\n"

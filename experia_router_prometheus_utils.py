from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from prometheus_client.core import GaugeMetricFamily, Metric


@dataclass(frozen=True)
class MetricDescriptor:
    """Fixed name and label set of a gauge family emitted on every scrape."""
    name: str
    documentation: str
    labels: tuple[str, ...] = ("ifname",)

    def family(self) -> GaugeMetricFamily:
        return GaugeMetricFamily(self.name, self.documentation, labels=list(self.labels))


class ScrapeFamilies:
    """Gauge families for a single scrape, created fresh each cycle."""

    def __init__(self, descriptors: Iterable[MetricDescriptor]):
        self._families: dict[str, GaugeMetricFamily] = {d.name: d.family() for d in descriptors}

    def add(self, descriptor: MetricDescriptor, label_values: Sequence[str], value: float):
        self._families[descriptor.name].add_metric(list(label_values), float(value))

    def non_empty(self) -> Iterator[Metric]:
        for family in self._families.values():
            if family.samples:
                yield family


def b(v: bool | int) -> int:
    """bool/int → 0/1"""
    return 1 if bool(v) else 0


def zero_families(families: ScrapeFamilies, descriptors: Iterable[MetricDescriptor], ifname: str):
    for d in descriptors:
        families.add(d, [ifname], 0.0)

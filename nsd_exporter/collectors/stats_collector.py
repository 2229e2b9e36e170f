"""Stats collection loop & prometheus_client collector adapter.

One scrape (`collect_once`):
  1. Run the stats command through the transport. On TransportError only the
     `<namespace>_up` sample (0) is produced.
  2. Otherwise emit up=1, then for every non-empty `key=value` line:
       split at the first '=', trim the key, look the key up in the descriptor
       cache (resolving on a miss), parse the value as float, emit a Sample.
     Malformed and unresolved lines are logged and skipped; they never abort
     the scrape or leave anything in the cache.

Construction performs the same resolution pass once (initial population);
a TransportError there propagates so an uninitialized collector is never
registered.
"""
from __future__ import annotations

import itertools
import logging
import re
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from prometheus_client.core import Metric
from prometheus_client.registry import Collector

from ..metrics.cache import DescriptorCache
from ..metrics.descriptors import MetricDescriptor, Sample, ValueKind, build_fqname, new_family
from ..metrics.resolution import Resolver
from ..utils import log_context
from ..utils.exceptions import MalformedLineError, TransportError, UnresolvedKeyError
from .control_client import ControlTransport

if TYPE_CHECKING:  # pragma: no cover
    from ..config.metric_config import ConfigurationModel

logger = logging.getLogger(__name__)

__all__ = [
    "STATS_COMMAND",
    "SEPARATOR",
    "ScrapeReport",
    "StatsCollector",
    "split_stats_line",
    "parse_stats_value",
]

STATS_COMMAND = "stats_noreset"
SEPARATOR = "="
# Plain decimal notation only: no 1_000, inf or nan.
DECIMAL_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")


def split_stats_line(line: str) -> tuple[str, str]:
    """Split a stats line into (trimmed key, raw value text) at the first separator."""
    key, sep, value = line.partition(SEPARATOR)
    if not sep:
        raise MalformedLineError(f"no {SEPARATOR!r} separator", line)
    key = key.strip()
    if not key:
        raise MalformedLineError("empty key", line)
    return key, value


def parse_stats_value(text: str, line: str = "") -> float:
    value = text.strip()
    if not DECIMAL_RE.fullmatch(value):
        raise MalformedLineError(f"non-numeric value {value!r}", line)
    return float(value)


def _response_lines(response: Iterable[str]) -> Iterator[str]:
    for raw in response:
        line = raw.rstrip("\r\n")
        if line.strip():
            yield line


@dataclass(slots=True)
class ScrapeReport:
    scrape: int
    up: bool = False
    emitted: int = 0
    malformed: int = 0
    unresolved: list[str] = field(default_factory=list)


class StatsCollector(Collector):
    """Custom collector republishing control-channel stats as Prometheus metrics."""

    def __init__(self, transport: ControlTransport, config: ConfigurationModel, namespace: str = "nsd",
                 *, command: str = STATS_COMMAND) -> None:
        self._transport = transport
        self.namespace = namespace
        self.command = command
        self._state_lock = threading.Lock()
        self._config = config
        self._cache = DescriptorCache(Resolver(config, namespace))
        self._scrapes = itertools.count(1)
        self.last_report: ScrapeReport | None = None
        self.up_descriptor = MetricDescriptor(
            raw_key="",
            name=build_fqname(namespace, "up"),
            documentation=f"Whether scraping {namespace}'s metrics was successful.",
            kind=ValueKind.GAUGE,
            source="health",
        )
        self._initial_populate()

    # -- state ---------------------------------------------------------------
    @property
    def config(self) -> ConfigurationModel:
        with self._state_lock:
            return self._config

    @property
    def cache(self) -> DescriptorCache:
        with self._state_lock:
            return self._cache

    def reload(self, config: ConfigurationModel) -> None:
        """Swap in a new configuration model together with an empty cache."""
        cache = DescriptorCache(Resolver(config, self.namespace))
        with self._state_lock:
            self._config = config
            self._cache = cache
        logger.info("metric configuration reloaded; descriptor cache reset")

    def _initial_populate(self) -> None:
        response = self._transport.command(self.command)
        cache = self.cache
        skipped = 0
        for line in _response_lines(response):
            try:
                raw_key, _ = split_stats_line(line)
            except MalformedLineError as exc:
                logger.warning("Malformed stats line %r: %s. Skipping.", exc.line, exc)
                skipped += 1
                continue
            if not isinstance(cache.lookup(raw_key), MetricDescriptor):
                logger.info("Metric %s not found in config. Skipping.", raw_key)
                skipped += 1
        logger.info("initial population: %d metric(s) resolved, %d line(s) skipped", len(cache), skipped)

    # -- scrape --------------------------------------------------------------
    def _sample_from_line(self, cache: DescriptorCache, line: str) -> Sample:
        raw_key, value_text = split_stats_line(line)
        desc = cache.lookup(raw_key)
        if not isinstance(desc, MetricDescriptor):
            raise UnresolvedKeyError(raw_key)
        return Sample(desc, parse_stats_value(value_text, line))

    def collect_once(self) -> list[Sample]:
        """Run one scrape; the health sample is always first."""
        scrape = next(self._scrapes)
        cache = self.cache
        report = ScrapeReport(scrape=scrape)
        with log_context.scoped(scrape=scrape):
            try:
                response = self._transport.command(self.command)
            except TransportError as exc:
                logger.error("scrape failed: %s", exc)
                self.last_report = report
                return [Sample(self.up_descriptor, 0.0)]

            report.up = True
            samples = [Sample(self.up_descriptor, 1.0)]
            for line in _response_lines(response):
                try:
                    samples.append(self._sample_from_line(cache, line))
                except UnresolvedKeyError as exc:
                    report.unresolved.append(exc.raw_key)
                    logger.info("Metric %s not configured. Skipping", exc.raw_key)
                except MalformedLineError as exc:
                    report.malformed += 1
                    logger.warning("Malformed stats line %r: %s. Skipping", exc.line, exc)
            report.emitted = len(samples) - 1
        self.last_report = report
        return samples

    # -- prometheus_client Collector protocol --------------------------------
    def collect(self) -> Iterator[Metric]:
        families: dict[str, Metric] = {}
        schemas: dict[str, tuple] = {}
        seen: set[tuple[str, tuple[str, ...]]] = set()
        for sample in self.collect_once():
            desc = sample.descriptor
            key = desc.exposed_name
            family = families.get(key)
            if family is None:
                try:
                    family = new_family(desc.name, desc.documentation, desc.kind, desc.label_names)
                except ValueError as exc:
                    logger.warning("cannot export %s as %r: %s", desc.raw_key, desc.name, exc)
                    continue
                families[key] = family
                schemas[key] = desc.schema
            elif schemas[key] != desc.schema:
                logger.warning(
                    "%s resolves to %s with a conflicting type/label set; sample dropped",
                    desc.raw_key, key,
                )
                continue
            ident = (key, desc.label_values)
            if ident in seen:
                logger.warning("duplicate series %s%s from %s; sample dropped", key, desc.label_values, desc.raw_key)
                continue
            seen.add(ident)
            family.add_metric(list(desc.label_values), sample.value)
        yield from families.values()

    def describe(self) -> Iterator[Metric]:
        yield new_family(self.up_descriptor.name, self.up_descriptor.documentation, ValueKind.GAUGE)
        names = {self.up_descriptor.exposed_name}
        for desc in self.cache.snapshot():
            if desc.exposed_name in names:
                continue
            names.add(desc.exposed_name)
            try:
                yield new_family(desc.name, desc.documentation, desc.kind, desc.label_names)
            except ValueError:
                continue

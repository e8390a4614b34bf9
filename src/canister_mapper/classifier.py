"""Classify procedures into getters, setters, queries and updates, grouped by section."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from canister_mapper import helper
from canister_mapper.config import DEFAULT_CONFIG, MapperConfig
from canister_mapper.models import ClassifiedMethod, MethodCategory, ProcedureSignature

logger = logging.getLogger(__name__)

GETTER_PREFIXES = ("get", "list", "find", "fetch")
SETTER_PREFIXES = ("set", "update", "create", "add", "save")

# Setters that replace a whole section, preferred over those that add to it.
REPLACING_SETTER_PREFIXES = ("set", "update", "save")


def setter_rank(setter: ClassifiedMethod) -> int:
    """Sort key of setters sharing a section: replacing setters first."""
    return 0 if setter.name.startswith(REPLACING_SETTER_PREFIXES) else 1


def preferred_setter(setters: Iterable[ClassifiedMethod]) -> ClassifiedMethod | None:
    """Pick the setter persisting a section, the first declared one among equally ranked setters."""
    return min(setters, key=setter_rank, default=None)


@dataclass
class MethodGroups:
    """Classified methods, bucketed by category, in discovery order."""

    getters: list[ClassifiedMethod] = field(default_factory=list)
    setters: list[ClassifiedMethod] = field(default_factory=list)
    queries: list[ClassifiedMethod] = field(default_factory=list)
    updates: list[ClassifiedMethod] = field(default_factory=list)

    def all(self) -> list[ClassifiedMethod]:
        return [*self.getters, *self.setters, *self.queries, *self.updates]

    def has_any_methods(self) -> bool:
        """Check that at least one method survived classification."""
        if not self.all():
            logger.warning("No valid methods found in canister interface")
            return False
        return True

    def setter_for(self, section_name: str) -> ClassifiedMethod | None:
        return preferred_setter(setter for setter in self.setters if setter.section_name == section_name)

    def group_by_section(self) -> dict[str, dict[str, list[ClassifiedMethod]]]:
        """Group all methods by section name, then by category."""
        sections: dict[str, dict[str, list[ClassifiedMethod]]] = {}
        for method in self.all():
            categories = sections.setdefault(
                method.section_name,
                {
                    MethodCategory.GETTER: [],
                    MethodCategory.SETTER: [],
                    MethodCategory.QUERY: [],
                    MethodCategory.UPDATE: [],
                },
            )
            categories[method.category].append(method)
        return sections


class MethodClassifier:
    """Deterministic, name based classification of procedure signatures."""

    def __init__(self, config: MapperConfig = DEFAULT_CONFIG):
        self.config = config

    def is_logging_method(self, name: str) -> bool:
        lowered = name.lower()
        return any(fragment in lowered for fragment in self.config.logging_fragments)

    def categorize(self, signature: ProcedureSignature) -> str:
        """Category of a single signature.

        Name prefixes win over the access mode, so a query named `getUsers` is a getter.
        """
        if signature.name.startswith(GETTER_PREFIXES):
            return MethodCategory.GETTER
        elif signature.name.startswith(SETTER_PREFIXES):
            return MethodCategory.SETTER
        elif signature.is_query:
            return MethodCategory.QUERY
        return MethodCategory.UPDATE

    def classify(self, signatures: Sequence[ProcedureSignature]) -> list[ClassifiedMethod]:
        """Classify signatures, leaving out logging facilities.

        Args:
            signatures: The normalized signatures of one service.

        Returns:
            One classified method per non-logging signature, in input order.
        """
        classified = []
        for signature in signatures:
            if self.is_logging_method(signature.name):
                logger.debug(f"Skipping logging method: {signature.name}")
                continue

            method = ClassifiedMethod(
                name=signature.name,
                section_name=helper.format_section_name(signature.name),
                category=self.categorize(signature),
            )
            logger.debug(f"Found {method.category}: {method.name} -> {method.section_name}")
            classified.append(method)

        return classified

    def group(self, signatures: Sequence[ProcedureSignature]) -> MethodGroups:
        """Classify signatures and bucket them by category."""
        groups = group_methods(self.classify(signatures))
        logger.info(
            f"Method discovery complete: {len(groups.getters)} getters, {len(groups.setters)} setters, "
            f"{len(groups.queries)} queries, {len(groups.updates)} updates"
        )
        return groups


def group_methods(methods: Iterable[ClassifiedMethod]) -> MethodGroups:
    groups = MethodGroups()
    buckets = {
        MethodCategory.GETTER: groups.getters,
        MethodCategory.SETTER: groups.setters,
        MethodCategory.QUERY: groups.queries,
        MethodCategory.UPDATE: groups.updates,
    }
    for method in methods:
        buckets[method.category].append(method)
    return groups

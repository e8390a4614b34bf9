"""Decide, per procedure, whether invoking it needs arguments."""

from __future__ import annotations

import logging

from canister_mapper.models import InterfaceDescription, ParameterRequirement, ParameterType
from canister_mapper.parser import guess_type_from_expression

logger = logging.getLogger(__name__)


class ParameterRequirementAnalyzer:
    """Derives the parameter requirement map of one interface description."""

    def analyze(self, description: InterfaceDescription) -> dict[str, ParameterRequirement]:
        """Compute the requirement of every discovered procedure.

        Exact parameter types are reused when the description was evaluated from an executable
        descriptor; otherwise the declared parameter expressions are counted.

        Args:
            description: The parsed interface description.

        Returns:
            Mapping from procedure name to its requirement.
        """
        requirements: dict[str, ParameterRequirement] = {}

        for signature in description.signatures:
            if signature.parameters is not None:
                parameter_types = signature.parameters
            else:
                parameter_types = tuple(
                    ParameterType(
                        name=f"param{index}",
                        logical_type=guess_type_from_expression(expression).logical_type,
                        wire_type=expression,
                    )
                    for index, expression in enumerate(signature.parameter_types)
                )

            requirement = ParameterRequirement(
                has_parameters=len(parameter_types) > 0,
                parameter_count=len(parameter_types),
                parameter_types=parameter_types,
            )
            requirements[signature.name] = requirement

            logger.debug(
                f"Method {signature.name}: has_parameters={requirement.has_parameters}, "
                f"count={requirement.parameter_count}"
            )

        logger.info(f"Extracted parameter requirements for {len(requirements)} methods")
        return requirements

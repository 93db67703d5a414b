"""Composite temperature evaluation."""

from typing import Dict, List, Mapping, MutableMapping
import logging

from ..config import CompositeSpec
from .curve import div_trunc

logger = logging.getLogger(__name__)


def mean(values: List[int]) -> int:
    """Integer mean, truncating toward zero"""
    return div_trunc(sum(values), len(values))


def combine(spec: CompositeSpec, inputs: List[int]) -> int:
    """Combine input temperatures according to the composite mode

    Args:
        spec: Composite specification
        inputs: Non-empty list of milli-degree readings

    Returns:
        Synthetic temperature in milli-degrees
    """
    if spec.mode == "max":
        return max(inputs)
    if spec.mode == "mean":
        return mean(inputs)
    if spec.mode == "meanmax":
        hot = [t for t in inputs if t >= spec.threshold]
        return mean(hot) if hot else mean(inputs)
    raise ValueError(f"Unknown composite mode {spec.mode!r}")


def evaluate_composites(composites: Mapping[str, CompositeSpec], temps: MutableMapping[str, int]) -> Dict[str, int]:
    """Evaluate composites in declaration order, adding them to temps

    Missing inputs are dropped with a warning. A composite with no usable
    input is skipped, so it is absent for later composites and fans.

    Returns:
        The composite values computed on this call
    """
    computed = {}
    for name, spec in composites.items():
        inputs = []
        for input_name in spec.inputs:
            if input_name in temps:
                inputs.append(temps[input_name])
            else:
                logger.warning(f"Composite {name}: input {input_name} not found")

        if not inputs:
            logger.warning(f"Composite {name}: no inputs")
            continue

        value = combine(spec, inputs)
        logger.debug(f"Composite {name} ({spec.mode}) of {inputs} = {value}")
        temps[name] = value
        computed[name] = value
    return computed

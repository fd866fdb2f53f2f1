"""
Weighted categorical selection, shared by population choice and
classification (type and size) choice.
"""

import math
import re
from typing import Any, Iterable, Mapping, Sequence, Tuple, TypeVar, Union

from .errors import MalformedExpression, NegativeWeight, NoValidChoice

T = TypeVar('T')

_PROPORTION_RE = re.compile(r'(?P<rate>[-+.eE\d]+)\s+(?P<label>\w+)')


def weighted_select(weights: Union[Sequence[Tuple[T, float]], Mapping[T, float]], rng,
                    source=None) -> T:
    """
    Draw one label with probability proportional to its weight.

    Parameters
    ----------
    weights : sequence of (label, weight) or mapping label -> weight
        Candidate labels in order; every weight must be >= 0
    rng : object with ``random()``
        Uniform [0, 1) source; advanced exactly once
    source : str, optional
        Name attached to any error raised

    Returns
    -------
    label
        A label whose weight is positive

    Raises
    ------
    NoValidChoice
        If there are no candidates or the weights sum to zero
    NegativeWeight
        If any weight is negative

    Examples
    --------
    >>> weighted_select([('A', 1.0), ('B', 0.0), ('C', 3.0)], np.random.default_rng(42))
    'C'
    """
    if isinstance(weights, Mapping):
        weights = list(weights.items())
    if not weights:
        raise NoValidChoice("Cannot select from an empty set", source=source)

    total = 0.0
    for label, weight in weights:
        if not weight >= 0:
            raise NegativeWeight(f"Weight of {label!r} may not be negative (gave {weight})",
                                 source=source)
        total += weight
    if total <= 0.0:
        raise NoValidChoice("Weights may not all be zero", source=source)
    if not math.isfinite(total):
        raise NoValidChoice(f"Weights must be finite (sum is {total})", source=source)

    threshold = total * rng.random()
    level = 0.0
    for label, weight in weights:
        level += weight
        if level > threshold:
            return label
    # only reached through rounding when threshold is within an ulp of total
    return next(label for label, weight in reversed(weights) if weight > 0)


def parse_proportion(entry: str) -> Tuple[str, float]:
    """
    Parse one ``"<weight> <label>"`` entry, e.g. ``"0.5 E"``.

    Raises
    ------
    MalformedExpression
        If the entry does not have that form
    """
    match = _PROPORTION_RE.fullmatch(entry.strip())
    if not match:
        raise MalformedExpression(f"Expected '<weight> <label>', got '{entry}'")
    try:
        rate = float(match['rate'])
    except ValueError:
        raise MalformedExpression(f"Cannot parse '{match['rate']}' as a weight") from None
    return match['label'], rate


def parse_proportions(entries: Union[str, Iterable[Any], Mapping[str, float], None]
                      ) -> Tuple[Tuple[str, float], ...]:
    """
    Normalise a weighted label set from configuration.

    Accepts a mapping ``{label: weight}``, a single ``"0.5 E"`` string, or a
    sequence mixing such strings and ``(label, weight)`` pairs. Order is kept.

    Returns
    -------
    tuple of (label, weight)
    """
    if entries is None:
        return ()
    if isinstance(entries, Mapping):
        return tuple((str(label), float(weight)) for label, weight in entries.items())
    if isinstance(entries, str):
        entries = [entries]
    result = []
    for entry in entries:
        if isinstance(entry, str):
            result.append(parse_proportion(entry))
        else:
            label, weight = entry
            result.append((label, float(weight)))
    return tuple(result)

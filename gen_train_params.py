"""
Default options for gen_train and the helpers that merge user options over them.

Options can be passed the way the recording scripts always did, as name/value
pairs ('SpikeRate', 50, 'Overlap', False), or as keyword arguments.
"""

import copy
import logging

import numpy as np

from gen_train_errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_OPTS = {
    'SpikeRate': 100,        # Hz, scalar or one value per axon
    'Overlap': True,         # spikes of different axons may coincide
    'Recruited': 0,          # axons that start after sample 0
    'Dismissed': 0,          # axons that stop before the last sample
    'Events': None,
    'RepeatTemplates': True,
    'Normalize': 'product',
}

# Fields of the 'Events' option. Onsets are in samples, tau in ISIs.
EVENT_DEFAULTS = {
    # Inflammation: rate jumps x10 at onset and decays back with tau
    'inflammation_axons': 0,
    'inflammation_onset': 0,
    'inflammation_tau': 1,
    # Natural amplitude change of single axons (logistic step)
    'amplitude_nat_axons': 0,
    'amplitude_nat_onset': 0,
    # Disturbance: all axons scaled by value from onset on, with probability
    # prob. Onsets are 0-based, so None (not 0) switches it off.
    'amplitude_dist_onset': None,
    'amplitude_dist_value': 1,
    'amplitude_dist_prob': 0,
}

NORMALIZE_MODES = ('product', 'peak', 'none')


def _pairs_to_dict(pairs, strict):
    if len(pairs) % 2:
        msg = 'Options must be pairs of Name(string) and Value'
        if strict:
            raise ConfigurationError(msg)
        logger.warning('%s; ignoring %d option arguments', msg, len(pairs))
        return {}

    names = pairs[0::2]
    bad = [name for name in names if not isinstance(name, str)]
    if bad:
        msg = f'Option names must be strings, got {bad!r}'
        if strict:
            raise ConfigurationError(msg)
        logger.warning('%s; ignoring %d option arguments', msg, len(pairs))
        return {}

    return dict(zip(names, pairs[1::2]))


def check_count(value, name, minimum=0):
    """`value` as an int, if it is a whole number >= minimum (1000.0 is fine)."""
    try:
        whole = int(value) == value
    except (TypeError, ValueError, OverflowError):
        whole = False
    if isinstance(value, bool) or not whole or value < minimum:
        raise ConfigurationError(f'{name} must be an integer >= {minimum}, got {value!r}')
    return int(value)


def merge_events(events):
    """Merge an 'Events' dict over EVENT_DEFAULTS. None stays None."""
    if events is None:
        return None
    if not isinstance(events, dict):
        raise ConfigurationError(f"'Events' must be a dict, got {type(events).__name__}")

    merged = dict(EVENT_DEFAULTS)
    merged.update(events)

    for key in ('inflammation_axons', 'amplitude_nat_axons', 'inflammation_onset', 'amplitude_nat_onset'):
        merged[key] = check_count(merged[key], f"Events['{key}']")
    if merged['amplitude_dist_onset'] is not None:
        merged['amplitude_dist_onset'] = check_count(merged['amplitude_dist_onset'], "Events['amplitude_dist_onset']")
    if merged['inflammation_tau'] <= 0:
        raise ConfigurationError("Events['inflammation_tau'] must be positive")
    if not 0 <= merged['amplitude_dist_prob'] <= 1:
        raise ConfigurationError("Events['amplitude_dist_prob'] must be in [0, 1]")
    return merged


def merge_opts(*pairs, strict=False, **opts):
    """
    Merge user options over DEFAULT_OPTS.

    Parameters
    ----------
    *pairs : name/value pairs
        e.g. ('SpikeRate', 50, 'Recruited', 2). With an odd count or a
        non-string name all pairs are ignored and a warning is logged,
        unless `strict` is set, in which case ConfigurationError is raised.
    strict : bool
        Fail fast on malformed pairs.
    **opts
        Options as keyword arguments, applied after the pairs.

    Returns
    -------
    dict
        Merged options. Unknown names are kept as given.
    """
    merged = copy.deepcopy(DEFAULT_OPTS)
    merged.update(_pairs_to_dict(pairs, strict))
    merged.update(opts)

    for key in ('Recruited', 'Dismissed'):
        merged[key] = check_count(merged[key], f"'{key}'")

    if merged['Normalize'] not in NORMALIZE_MODES:
        raise ConfigurationError(f"'Normalize' must be one of {NORMALIZE_MODES}, got {merged['Normalize']!r}")

    merged['Events'] = merge_events(merged['Events'])
    return merged


def expand_spike_rate(spike_rate, n_axons, rng):
    """
    Per-axon firing rates. A scalar rate r becomes r * U(0.5, 1.5) for each
    axon; a vector of length n_axons is used as it is.
    """
    spike_rate = np.asarray(spike_rate, dtype=float)
    if spike_rate.size == 1:
        r = 0.5 + (1.5 - 0.5) * rng.random(n_axons)
        rates = r * spike_rate.item()
    elif spike_rate.size == n_axons:
        rates = spike_rate.ravel().copy()
    else:
        raise ConfigurationError(f"'SpikeRate' must be a scalar or have {n_axons} values, got {spike_rate.size}")

    if np.any(rates <= 0) or not np.all(np.isfinite(rates)):
        raise ConfigurationError("'SpikeRate' must be positive and finite")
    return rates

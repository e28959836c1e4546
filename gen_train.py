"""
Simulated extracellular recording made of many independent axons.

Every axon gets a template, a firing rate, an amplitude and an active window,
fires with exponential ISIs and is convolved with its template. The sum of all
axons is the recording; the per-axon matrix and the report are the ground
truth for testing spike sorting.

    rng = np.random.default_rng(0)
    v, vv, report = gen_train(templates, 10, 24000, 24000 * 5, 'Recruited', 2, rng=rng)
"""

import logging
import time

import numpy as np
from joblib import Parallel, delayed
from tqdm import tqdm

from axon_utils import generate_axon
from gen_train_errors import ConfigurationError, SamplingError
from gen_train_params import merge_opts, expand_spike_rate, check_count
from report_utils import build_report

logger = logging.getLogger(__name__)


def choose_axons(rng, population, k, what):
    """k distinct indices out of range(population)."""
    if k > population:
        raise SamplingError(f"Cannot pick {k} {what} out of {population} without replacement")
    return rng.choice(population, size=k, replace=False)


def axon_amplitudes(n_axons, rng):
    """
    Amplitude scale of each axon: U(0, 1) * (1 + Poisson(1)), at least 0.5.

    Most axons end up small and a few large, as for axons far from and close
    to the electrode (Rossant et al. 2016).
    """
    r = rng.random(n_axons) * (1 + rng.poisson(1, n_axons))
    r[r < 0.5] = 0.5
    return r


def normalize_signal(v, mode):
    if mode == 'product':
        # scales by the peak, it does not bring it to 1
        return v * np.max(v)
    if mode == 'peak':
        peak = np.max(np.abs(v))
        return v / peak if peak > 0 else v
    return v


def _check_inputs(templates, n_axons, fs, duration):
    templates = np.asarray(templates, dtype=float)
    if templates.ndim == 1:
        templates = templates[:, None]
    if templates.ndim != 2 or templates.shape[0] == 0 or templates.shape[1] == 0:
        raise ConfigurationError(f'templates must be (n_samples, n_templates), got shape {templates.shape}')
    n_axons = check_count(n_axons, 'n_axons', minimum=1)
    duration = check_count(duration, 'duration', minimum=1)
    if fs <= 0:
        raise ConfigurationError(f'fs must be positive, got {fs}')
    return templates, n_axons, duration


def gen_train(templates, n_axons, fs, duration, *pairs, rng=None, progress=None, n_jobs=1,
              strict=False, verbose=False, **opts):
    """
    Simulate a spike train from an extracellular recording.

    Parameters
    ----------
    templates : array_like
        (n_samples, n_templates) matrix, one spike template per column.
    n_axons : int
        Number of axons. Each is assigned a template and an amplitude at random.
    fs : float
        Sampling rate (Hz).
    duration : int
        Length of the simulation in samples.
    *pairs
        Options as name/value pairs, e.g. 'SpikeRate', 50, 'Overlap', False.
        See gen_train_params.DEFAULT_OPTS.
    rng : np.random.Generator, optional
        Source of all randomness. A fresh default_rng() if None.
    progress : callable, optional
        Called with the fraction of axons done after each axon. Anything it
        raises aborts the simulation.
    n_jobs : int
        Workers for joblib when overlaps are allowed. The result does not
        depend on it.
    strict : bool
        Raise ConfigurationError on malformed option pairs instead of
        warning and ignoring them.
    verbose : bool
        Show a progress bar and a summary.
    **opts
        Options as keyword arguments.

    Returns
    -------
    v : np.ndarray
        (duration,) simulated recording.
    vv : np.ndarray
        (duration, n_axons) contribution of each axon before summing.
    report : dict
        Options used, windows, spike times and masks, event bookkeeping.
    """
    templates, n_axons, duration = _check_inputs(templates, n_axons, fs, duration)
    n_templates = templates.shape[1]
    if rng is None:
        rng = np.random.default_rng()

    opts = merge_opts(*pairs, strict=strict, **opts)
    opts['SpikeRate'] = expand_spike_rate(opts['SpikeRate'], n_axons, rng)
    amplitudes = axon_amplitudes(n_axons, rng)

    # Starting time of each axon
    st_time = np.zeros(n_axons, dtype=int)
    recruited = choose_axons(rng, n_axons, opts['Recruited'], 'recruited axons')
    st_time[recruited] = rng.integers(0, int(np.ceil(2 * duration / 3)), size=recruited.size)

    # Ending time of each axon
    end_time = np.full(n_axons, duration - 1, dtype=int)
    dismissed = choose_axons(rng, n_axons, opts['Dismissed'], 'dismissed axons')
    end_time[dismissed] = rng.integers(int(np.ceil(duration / 3)) - 1, duration, size=dismissed.size)

    evts = opts['Events']
    inflamed = amped = np.array([], dtype=int)
    if evts is not None:
        if evts['inflammation_axons'] > 0:
            inflamed = choose_axons(rng, n_axons, evts['inflammation_axons'], 'inflamed axons')
        if evts['amplitude_nat_axons'] > 0:
            amped = choose_axons(rng, n_axons, evts['amplitude_nat_axons'], 'amplitude-shifted axons')

    if opts['RepeatTemplates']:
        templates_idx = rng.integers(0, n_templates, size=n_axons)
    else:
        templates_idx = choose_axons(rng, n_templates, n_axons, 'non-repeating templates')

    seeds = rng.integers(0, 2**32, size=n_axons)

    def axon_kwargs(i):
        kwargs = {}
        if i in inflamed:
            kwargs['inflammation'] = (evts['inflammation_onset'], evts['inflammation_tau'])
        if i in amped:
            kwargs['amplitude_shift'] = evts['amplitude_nat_onset']
        return kwargs

    if verbose:
        print(f'\n=== SPIKE TRAIN SIMULATION ===')
        print(f'Simulating {n_axons} axons, {duration} samples at {fs} Hz '
              f'(overlap={opts["Overlap"]}, recruited={opts["Recruited"]}, dismissed={opts["Dismissed"]})')
    start_time = time.time()

    if opts['Overlap']:
        jobs = Parallel(n_jobs=n_jobs, return_as='generator')(
            delayed(generate_axon)(
                i, templates[:, templates_idx[i]], opts['SpikeRate'][i], amplitudes[i],
                st_time[i], end_time[i], fs, duration, np.random.default_rng(seeds[i]),
                **axon_kwargs(i)
            )
            for i in range(n_axons)
        )
    else:
        # Later axons are pruned against all earlier ones, so this stays sequential
        def sequential():
            taken = np.array([], dtype=int)
            for i in range(n_axons):
                res = generate_axon(
                    i, templates[:, templates_idx[i]], opts['SpikeRate'][i], amplitudes[i],
                    st_time[i], end_time[i], fs, duration, np.random.default_rng(seeds[i]),
                    taken=taken, **axon_kwargs(i)
                )
                taken = res.taken
                yield res
        jobs = sequential()

    if verbose and progress is None:
        jobs = tqdm(jobs, total=n_axons, desc='Generating simulation', unit='axon')

    vv = np.zeros((duration, n_axons))
    results = []
    for i, res in enumerate(jobs):
        vv[:, i] = res.waveform
        results.append(res)
        if progress is not None:
            progress((i + 1) / n_axons)

    # All axons change amplitude together after a disturbance
    events = None
    if evts is not None:
        disturbed = False
        onset = evts['amplitude_dist_onset']
        if onset is not None and rng.random() < evts['amplitude_dist_prob']:
            vv[onset:, :] = vv[onset:, :] * evts['amplitude_dist_value']
            disturbed = True
            logger.debug('amplitude disturbance x%s from sample %d', evts['amplitude_dist_value'], onset)

        events = {
            'inflamed': inflamed,
            'inf_time': evts['inflammation_onset'],
            'amped': amped,
            'amp_time': evts['amplitude_nat_onset'],
            'disturbed': disturbed,
        }

    v = vv.sum(axis=1)
    v = normalize_signal(v, opts['Normalize'])

    report = build_report(opts, results, recruited, dismissed, templates_idx, amplitudes, events)

    if verbose:
        n_spikes = sum(res.sptimes.size for res in results)
        print(f'Simulation took: {time.time() - start_time:.2f} seconds')
        print(f'Total spikes: {n_spikes} ({n_spikes / n_axons:.1f} per axon)')

    return v, vv, report

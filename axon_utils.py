"""
Spike train generation for a single axon.

Each axon fires with exponential inter-spike intervals (ISIs) that are never
shorter than one template, optionally sped up by an inflammation event,
limited to the axon's active window and, when overlap is not allowed, kept
away from the spikes already accepted for other axons. The impulse train is
then weighted by the axon amplitude and convolved with its template.

All sample indices are 0-based.
"""

import logging
from collections import namedtuple

import numpy as np
from scipy.signal import convolve

logger = logging.getLogger(__name__)

AxonResult = namedtuple('AxonResult', ['waveform', 'sptimes', 'spks', 'notes', 'taken'])


def draw_isi(rate, fs, duration, min_isi, rng):
    """
    Draw ISIs (in samples) for an axon firing at `rate` Hz.

    Three times the expected number of spikes in `duration` samples are
    drawn so that enough survive the later clipping and pruning.
    ISIs shorter than `min_isi` are raised to `min_isi`.
    """
    max_spike_num = int(np.ceil(rate * duration / fs))
    isi = rng.exponential(fs / rate, size=3 * max_spike_num)
    isi = np.round(isi).astype(int)
    isi[isi < min_isi] = min_isi
    return isi


def inflame_isi(isi, onset, tau, min_isi):
    """
    Speed up firing after `onset` (samples).

    The ISIs following the first one whose spike falls after `onset`
    are divided by 9*exp(-k/tau) + 1, k = 1, 2, ..., i.e. the rate jumps to
    10 times baseline and relaxes back with a time constant of `tau` ISIs.
    """
    crossed = np.flatnonzero(spike_times_from_isi(isi) > onset)
    if crossed.size == 0:
        return isi

    inf_idx = crossed[0]
    k = np.arange(1, isi.size - inf_idx)
    sr = 9 * np.exp(-k / tau) + 1

    isi = isi.astype(float)
    isi[inf_idx + 1:] = isi[inf_idx + 1:] / sr
    isi[isi < min_isi] = min_isi
    return np.ceil(isi).astype(int)


def spike_times_from_isi(isi):
    # First spike lands on sample isi[0], i.e. index isi[0] - 1
    return np.cumsum(isi) - 1


def clip_spike_times(sptimes, start, end, duration):
    """Keep spikes within [start, end] and inside the recording."""
    lo = max(start, 0)
    hi = min(end, duration - 1)
    return sptimes[(sptimes >= lo) & (sptimes <= hi)]


def remove_overlaps(sptimes, taken, min_isi):
    """
    Drop spikes that collide with spikes already accepted for other axons.

    A candidate s collides with an accepted spike t when
    t - min_isi <= s < t + min_isi. Accepted spikes are never removed.

    Parameters
    ----------
    sptimes : np.ndarray
        Candidate spike indices of the current axon, sorted.
    taken : np.ndarray
        Sorted spike indices accepted so far for all previous axons.
    min_isi : int
        Template length in samples.

    Returns
    -------
    kept : np.ndarray
        Candidates without collisions.
    taken : np.ndarray
        New accumulator, `taken` plus `kept`, sorted.
    """
    taken = np.asarray(taken, dtype=int)
    if taken.size and sptimes.size:
        # first accepted spike with t > s - min_isi; collision if it is <= s + min_isi
        idx = np.searchsorted(taken, sptimes - min_isi, side='right')
        nearest = taken[np.minimum(idx, taken.size - 1)]
        collide = (idx < taken.size) & (nearest <= sptimes + min_isi)
        kept = sptimes[~collide]
    else:
        kept = sptimes

    return kept, np.sort(np.concatenate([taken, kept]))


def impulse_train(sptimes, amplitude, duration, rng):
    """
    Impulses of height `amplitude` at each spike with a +/-1% jitter, and the
    matching 0/1 spike mask.
    """
    v = np.zeros(duration)
    spks = np.zeros(duration, dtype=int)

    rand_amp = 0.99 + (1.01 - 0.99) * rng.random(sptimes.size)
    v[sptimes] = amplitude * rand_amp
    spks[sptimes] = 1
    return v, spks


def amplitude_shift_gain(amplitude, delta, onset, fs, duration):
    """Logistic gain going from `amplitude` to `amplitude + delta` around `onset`."""
    dt = 1 / fs
    k = np.arange(duration)
    return amplitude + delta / (1 + np.exp(-10 * dt * (k - onset)))


def draw_spike_times(rate, fs, duration, min_isi, start, end, rng, inflammation=None):
    """
    Spike indices of one axon before overlap pruning.

    `inflammation` is a (onset, tau) tuple or None. The rate change is applied
    to the whole ISI sequence before it is clipped to [start, end].
    """
    isi = draw_isi(rate, fs, duration, min_isi, rng)
    if inflammation is not None:
        onset, tau = inflammation
        isi = inflame_isi(isi, onset, tau, min_isi)

    sptimes = spike_times_from_isi(isi)
    return clip_spike_times(sptimes, start, end, duration)


def render_axon(sptimes, template, amplitude, fs, duration, rng, amplitude_shift=None):
    """
    Waveform of one axon: weighted impulses convolved with its template.

    `amplitude_shift` is the onset sample of a natural amplitude change or
    None. Returns (waveform, spks, delta) where delta is the drawn change in
    amplitude (None if there was no change).
    """
    v, spks = impulse_train(sptimes, amplitude, duration, rng)

    delta = None
    if amplitude_shift is not None:
        delta = 0.5 * rng.random() - 0.25
        v = v * amplitude_shift_gain(amplitude, delta, amplitude_shift, fs, duration)

    # 'same' keeps the size of the first input
    waveform = convolve(v, template, mode='same')
    return waveform, spks, delta


def generate_axon(axon, template, rate, amplitude, start, end, fs, duration, rng,
                  taken=None, inflammation=None, amplitude_shift=None):
    """
    Generate one axon of the simulated recording.

    Parameters
    ----------
    axon : int
        Axon index, used for logging.
    template : np.ndarray
        Spike shape assigned to this axon. Its length is the minimum ISI.
    rate : float
        Mean firing rate (Hz).
    amplitude : float
        Amplitude scale of the axon.
    start, end : int
        Active window, inclusive. Swapped if start > end.
    fs : float
        Sampling rate (Hz).
    duration : int
        Recording length in samples.
    rng : np.random.Generator
    taken : np.ndarray or None
        Spikes accepted so far for previous axons. None allows overlaps.
    inflammation : tuple or None
        (onset, tau) of an inflammation event for this axon.
    amplitude_shift : int or None
        Onset of a natural amplitude change for this axon.

    Returns
    -------
    AxonResult
        waveform (duration,), sptimes, spks (duration,) 0/1 mask, notes dict,
        and the updated `taken` accumulator (None when overlaps are allowed).
    """
    if end < start:
        start, end = end, start
    min_isi = len(template)

    sptimes = draw_spike_times(rate, fs, duration, min_isi, start, end, rng, inflammation)
    if taken is not None:
        n_before = sptimes.size
        sptimes, taken = remove_overlaps(sptimes, taken, min_isi)
        logger.debug('axon %d: %d overlapping spikes removed', axon, n_before - sptimes.size)

    waveform, spks, delta = render_axon(sptimes, template, amplitude, fs, duration, rng, amplitude_shift)
    if sptimes.size == 0:
        logger.debug('axon %d: no spikes in [%d, %d]', axon, start, end)

    notes = {
        'start': start,
        'end': end,
        'inflamed': inflammation is not None,
        'amp_shift': delta,
    }
    return AxonResult(waveform, sptimes, spks, notes, taken)
